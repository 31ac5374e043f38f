"""Built-in resource templates, one subpackage per provider."""
