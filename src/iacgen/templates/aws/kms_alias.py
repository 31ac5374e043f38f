"""KMS alias pointing at a key."""

from iacgen.ast.spec import Arg

KIND = "aws:kms/alias:Alias"

ATTRIBUTES = ("targetKeyArn",)

ARGS = [
    Arg("Name", "string"),
    Arg("AliasName", "string"),
    Arg("TargetKey", "resource:aws:kms_key"),
]

CREATE = """\
targetKeyId: ${TargetKey.id}
name: ${AliasName}
"""
