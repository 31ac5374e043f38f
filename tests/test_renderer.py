import yaml

from iacgen.compiler import Renderer
from iacgen.stack import parse_stack_text

STACK = """
name: demo
resources:
  alias:
    template: aws:kms_alias
    args: {Name: a, AliasName: alias/a, TargetKey: {$ref: key}}
  key:
    template: aws:kms_key
    args: {Name: key, EnableKeyRotation: true}
  secret:
    template: aws:secret
    args: {Name: token, protect: true}
"""


def test_render_one_document_per_unit_in_creation_order(compiler):
    text = Renderer().render(compiler.compile(parse_stack_text(STACK)))
    docs = list(yaml.safe_load_all(text))

    assert [d["name"] for d in docs] == ["key", "alias", "secret"]
    key, alias, secret = docs
    assert key == {
        "name": "key",
        "template": "aws:kms_key",
        "kind": "aws:kms/key:Key",
        "dependsOn": [],
        "inputs": {"enableKeyRotation": True},
    }
    assert alias["dependsOn"] == ["key"]
    assert alias["inputs"] == {"targetKeyId": "${key.id}", "name": "alias/a"}
    assert secret["options"] == {"protect": True}
    assert secret["inputs"] == {"name": "token", "recoveryWindowInDays": 0}


def test_render_is_reproducible(compiler):
    first = Renderer().render(compiler.compile(parse_stack_text(STACK)))
    second = Renderer().render(compiler.compile(parse_stack_text(STACK)))
    assert first == second
    assert first.startswith("---\n")
