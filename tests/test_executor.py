"""Tests for dependency-ordered dispatch and failure cascading."""

import threading

import pytest

from iacgen.ast.spec import Arg, Ref
from iacgen.compiler import Compiler
from iacgen.compiler.unit import UnitState
from iacgen.config import CompilerConfig
from iacgen.exceptions import ErrorKind
from iacgen.models import UnitStatus
from iacgen.registry import TemplateRegistry
from iacgen.runtime.backend import InMemoryBackend
from iacgen.runtime.executor import Executor
from iacgen.stack import parse_stack_text

KEY_ALIAS = """
name: keys
resources:
  key:
    template: aws:kms_key
    args: {Name: key}
  alias:
    template: aws:kms_alias
    args: {Name: a, AliasName: alias/a, TargetKey: {$ref: key}}
"""

BUCKETS = """
name: buckets
resources:
  bucket:
    template: aws:s3_bucket
    args: {Name: site}
  policy:
    template: aws:s3_bucket_policy
    args:
      Name: site-policy
      Bucket: {$ref: bucket}
      Policy:
        Statement:
          - Effect: Allow
            Resource: {$ref: bucket.arn}
  secret:
    template: aws:secret
    args: {Name: db-password}
"""

API = """
name: api
resources:
  api:
    template: aws:rest_api
    args: {Name: api}
  deployment:
    template: aws:api_deployment
    args: {Name: deployment, RestApi: {$ref: api}}
  stage:
    template: aws:api_stage
    args: {Name: prod, RestApi: {$ref: api}, Deployment: {$ref: deployment}, StageName: prod}
"""


def compile_text(compiler, text):
    return compiler.compile(parse_stack_text(text))


def test_dependent_not_issued_before_dependency_resolves(compiler, backend):
    stack = compile_text(compiler, KEY_ALIAS)
    executor = Executor(stack, backend)

    report = executor.run()
    assert backend.issued_names == ["key"]
    assert report.unit("key").status is UnitStatus.RUNNING
    assert report.unit("alias").status is UnitStatus.PENDING
    assert not report.complete

    backend.succeed("key")
    assert backend.issued_names == ["key", "alias"]
    alias_call = backend.calls[1]
    assert alias_call.inputs == {"targetKeyId": "key-id", "name": "alias/a"}
    assert alias_call.options == {"dependsOn": ["key"]}

    backend.succeed("alias")
    report = executor.report()
    assert report.complete
    assert report.statuses() == {"key": UnitStatus.SUCCEEDED, "alias": UnitStatus.SUCCEEDED}
    assert stack.unit("alias").state is UnitState.EXPORTS_RESOLVED
    assert executor.wait(0)


def test_independent_units_issued_together(compiler, backend):
    stack = compile_text(compiler, BUCKETS)
    Executor(stack, backend).run()
    assert backend.issued_names == ["bucket", "secret"]


def test_failure_cascades_to_dependents_only(compiler, backend):
    stack = compile_text(compiler, BUCKETS)
    executor = Executor(stack, backend)
    executor.run()

    backend.fail("bucket", "access denied")
    backend.succeed("secret")
    report = executor.report()

    assert report.complete
    assert [u.name for u in report.failed] == ["bucket", "policy"]
    policy = report.unit("policy")
    assert policy.error_kind is ErrorKind.RESOURCE_CREATION_FAILED
    assert "bucket" in policy.error
    assert report.unit("secret").status is UnitStatus.SUCCEEDED
    assert not backend.issued("policy")


def test_nested_references_are_resolved_before_create(compiler, auto_backend):
    stack = compile_text(compiler, BUCKETS)
    report = Executor(stack, auto_backend).run()
    assert report.complete and not report.failed
    policy_call = auto_backend.calls[-1]
    assert policy_call.name == "policy"
    assert policy_call.inputs["bucket"] == "bucket-id"
    assert policy_call.inputs["policy"]["Statement"][0]["Resource"] == (
        "arn:iacgen:aws:s3/bucket:Bucket:bucket"
    )
    assert report.outputs == {"bucket": {"BucketName": "bucket-id"}}


def test_stage_invoke_url_flows_to_outputs(compiler):
    url = "https://abc.execute-api.region.amazonaws.com/prod"
    backend = InMemoryBackend(
        auto_attributes=True,
        attribute_factory=lambda call: {"invokeUrl": url} if call.name == "stage" else {},
    )
    stack = compile_text(compiler, API)
    report = Executor(stack, backend).run()

    assert [c.name for c in backend.calls] == ["api", "deployment", "stage"]
    assert stack.unit("stage").properties["StageInvokeUrl"].result() == (
        "abc.execute-api.region.amazonaws.com"
    )
    assert report.outputs == {"stage": {"Url": url}}
    assert stack.outputs()["stage"]["Url"].result() == url


def test_property_derivation_failure_marks_unit(compiler):
    backend = InMemoryBackend(
        auto_attributes=True, attribute_factory=lambda call: {"invokeUrl": "not-a-url"}
    )
    report = Executor(compile_text(compiler, API), backend).run()
    stage = report.unit("stage")
    assert stage.status is UnitStatus.FAILED
    assert stage.error_kind is ErrorKind.PROPERTY_DERIVATION_FAILED
    assert report.unit("api").status is UnitStatus.SUCCEEDED


def test_cancel_stops_new_issues(compiler, backend):
    stack = compile_text(compiler, KEY_ALIAS)
    executor = Executor(stack, backend)
    executor.run()
    executor.cancel()
    backend.succeed("key")

    report = executor.report()
    assert report.statuses() == {"key": UnitStatus.SUCCEEDED, "alias": UnitStatus.CANCELLED}
    assert report.complete
    assert backend.issued_names == ["key"]


def test_create_step_errors_are_recorded(make_template, backend):
    def create(ctx):
        raise RuntimeError("provider exploded")

    registry = TemplateRegistry(CompilerConfig(providers=[]))
    registry.register(make_template(args=[Arg("Name", "string")], body="name: ${Name}\n", create=create))
    stack = Compiler(registry=registry).compile(
        {"resources": {"a": {"template": "test:thing", "args": {"Name": "a"}}}}
    )
    report = Executor(stack, backend).run()
    assert report.unit("a").error_kind is ErrorKind.RESOURCE_CREATION_FAILED
    assert "provider exploded" in report.unit("a").error


def test_undeclared_attribute_fails_at_runtime(make_template, auto_backend):
    registry = TemplateRegistry(CompilerConfig(providers=[]))
    registry.register(make_template(template_id="test:a", args=[], body="x: 1\n"))
    registry.register(
        make_template(
            template_id="test:b",
            args=[Arg("Source", "resource")],
            body="value: ${Source.nothing}\n",
        )
    )
    stack = Compiler(registry=registry).compile(
        {
            "resources": {
                "a": {"template": "test:a"},
                "b": {"template": "test:b", "args": {"Source": Ref("a")}},
            }
        }
    )
    report = Executor(stack, auto_backend).run()
    assert report.unit("a").status is UnitStatus.SUCCEEDED
    assert report.unit("b").error_kind is ErrorKind.PROPERTY_DERIVATION_FAILED


def test_handles_resolved_from_worker_threads(compiler, backend):
    stack = compile_text(compiler, KEY_ALIAS)
    executor = Executor(stack, backend)
    executor.run()

    def resolve_all():
        backend.succeed("key")
        backend.succeed("alias")

    worker = threading.Thread(target=resolve_all)
    worker.start()
    assert executor.wait(timeout=5)
    worker.join()
    assert not executor.report().failed


def test_stack_cannot_be_run_twice(compiler, auto_backend):
    stack = compile_text(compiler, KEY_ALIAS)
    Executor(stack, auto_backend).run()
    with pytest.raises(RuntimeError):
        Executor(stack, InMemoryBackend()).run()
