"""KMS customer managed key."""

from iacgen.ast.spec import Arg

KIND = "aws:kms/key:Key"

ATTRIBUTES = ("keyId",)

ARGS = [
    Arg("Name", "string"),
    Arg("Description", "string", required=False),
    Arg("DeletionWindowInDays", "number", required=False),
    Arg("EnableKeyRotation", "boolean", required=False),
    Arg("KeyPolicy", "object", required=False, description="IAM policy document"),
]

CREATE = """\
description: ${Description}
deletionWindowInDays: ${DeletionWindowInDays}
enableKeyRotation: ${EnableKeyRotation}
policy: ${KeyPolicy}
"""


def properties(resource, args):
    return {"Arn": resource.attribute("arn")}
