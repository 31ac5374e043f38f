"""End-to-end behaviour of the built-in templates."""

import pytest

from iacgen.ast.spec import Arg, Ref
from iacgen.compiler.binder import bind
from iacgen.compiler.shape import describe_bindings
from iacgen.compiler.evaluator import expand
from iacgen.exceptions import DirectiveEvaluationError, UnknownArgumentError
from iacgen.runtime.deferred import DeferredValue
from iacgen.stack import parse_stack_text
from iacgen.templates.aws.api_stage import invoke_url_domain

ORIGINS = [{"originId": "site-origin", "domainName": "site.s3.amazonaws.com"}]


def distribution_args(**overrides):
    args = {
        "Name": "cdn",
        "Origins": ORIGINS,
        "CloudfrontDefaultCertificate": True,
        "Enabled": True,
        "DefaultCacheBehavior": {
            "allowedMethods": ["GET", "HEAD"],
            "viewerProtocolPolicy": "redirect-to-https",
        },
        "Restrictions": {"geoRestriction": {"restrictionType": "none"}},
    }
    args.update(overrides)
    return args


def test_kms_alias_edge_to_key(compiler):
    stack = compiler.compile(
        parse_stack_text(
            """
resources:
  key: {template: aws:kms_key, args: {Name: key}}
  alias:
    template: aws:kms_alias
    args: {Name: a, AliasName: alias/a, TargetKey: {$ref: key}}
"""
        )
    )
    assert stack.graph.edges == [("alias", "key")]
    assert stack.unit("alias").inputs == {"targetKeyId": Ref("key", "id"), "name": "alias/a"}


def test_distribution_without_target_origin_uses_first_origin(registry):
    template = registry.get("aws:cloudfront_distribution")
    unit = bind(template, "cdn", distribution_args())

    assert "targetOriginId: \"site-origin\"" in unit.source
    assert unit.inputs["defaultCacheBehavior"] == {
        "allowedMethods": ["GET", "HEAD"],
        "viewerProtocolPolicy": "redirect-to-https",
        "targetOriginId": "site-origin",
    }
    assert "defaultRootObject" not in unit.inputs


def test_distribution_with_target_origin_is_verbatim(registry):
    template = registry.get("aws:cloudfront_distribution")
    behavior = {"targetOriginId": "explicit", "allowedMethods": ["GET"]}
    unit = bind(
        template,
        "cdn",
        distribution_args(DefaultCacheBehavior=behavior, DefaultRootObject="index.html"),
    )
    assert "$merge" not in unit.source
    assert unit.inputs["defaultCacheBehavior"] == behavior
    assert unit.inputs["defaultRootObject"] == "index.html"
    assert unit.inputs["viewerCertificate"] == {"cloudfrontDefaultCertificate": True}


def test_distribution_expansion_is_deterministic(registry):
    template = registry.get("aws:cloudfront_distribution")
    shape = describe_bindings(distribution_args())
    assert expand(template.directives, shape) == expand(template.directives, shape)


def test_distribution_origins_reference_cannot_be_inspected(registry):
    template = registry.get("aws:cloudfront_distribution")
    with pytest.raises(DirectiveEvaluationError):
        bind(template, "cdn", distribution_args(Origins=Ref("origins", "list")))


def test_stage_invoke_url_domain():
    url = "https://abc.execute-api.region.amazonaws.com/prod"
    assert invoke_url_domain(url) == "abc.execute-api.region.amazonaws.com"


def test_stage_properties_are_derived_lazily(registry):
    template = registry.get("aws:api_stage")
    unit = bind(
        template,
        "stage",
        {"Name": "prod", "RestApi": Ref("api"), "Deployment": Ref("dep"), "StageName": "prod"},
    )
    domain = unit.properties["StageInvokeUrl"]
    assert isinstance(domain, DeferredValue) and domain.pending

    unit.handle.succeed({"id": "s", "invokeUrl": "https://abc.execute-api.region.amazonaws.com/prod"})
    assert domain.result() == "abc.execute-api.region.amazonaws.com"
    assert unit.exports["Url"].result() == "https://abc.execute-api.region.amazonaws.com/prod"


def test_unknown_argument_before_expansion(registry, monkeypatch):
    import iacgen.compiler.binder as binder_module

    def fail_expand(*args, **kwargs):
        raise AssertionError("expand must not run")

    monkeypatch.setattr(binder_module, "expand", fail_expand)
    with pytest.raises(UnknownArgumentError):
        bind(registry.get("aws:kms_alias"), "a", {"Name": "a", "Alias": "alias/a"})


def test_secret_options_and_properties(registry):
    template = registry.get("aws:secret")
    unit = bind(template, "secret", {"Name": "token", "protect": True})
    assert unit.inputs == {"name": "token", "recoveryWindowInDays": 0}
    assert unit.options == {"protect": True}

    unit.handle.succeed({"id": "sec-1", "arn": "arn:aws:secretsmanager:secret"})
    assert unit.properties["Arn"].result() == "arn:aws:secretsmanager:secret"
    assert unit.properties["Id"].result() == "sec-1"


def test_bucket_website_directive(registry):
    template = registry.get("aws:s3_bucket")
    plain = bind(template, "b", {"Name": "b"})
    site = bind(template, "b", {"Name": "b", "IndexDocument": "index.html"})
    assert "website" not in plain.inputs
    assert site.inputs["website"] == {"indexDocument": "index.html"}


def test_interpolated_origin_id_is_kept_verbatim(registry):
    template = registry.get("aws:cloudfront_distribution")
    origins = [{"originId": "${Name}", "domainName": "site.s3.amazonaws.com"}]
    unit = bind(template, "cdn", distribution_args(Origins=origins))

    assert unit.inputs["defaultCacheBehavior"]["targetOriginId"] == "${Name}"
    assert unit.inputs["origins"] == origins


def test_interpolated_object_is_not_spread_or_substituted(make_template):
    template = make_template(
        args=[Arg("Name", "string"), Arg("Cfg", "object")],
        body="#TMPL cfg: {{ Cfg }}\n",
    )
    cfg = {"$merge": {"a": 1}, "note": "${Undeclared}", "empty": None}
    unit = bind(template, "t", {"Name": "n", "Cfg": cfg})
    assert unit.inputs == {"cfg": cfg}
