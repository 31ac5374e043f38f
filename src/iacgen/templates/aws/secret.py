"""Secrets Manager secret, deleted without a recovery window."""

from iacgen.ast.spec import Arg

KIND = "aws:secretsmanager/secret:Secret"

ATTRIBUTES = ()

ARGS = [
    Arg("Name", "string"),
    Arg("protect", "boolean", required=False),
]

CREATE = """\
name: ${Name}
recoveryWindowInDays: 0
"""

OPTIONS = {"protect": "${protect}"}


def properties(resource, args):
    return {
        "Arn": resource.attribute("arn"),
        "Id": resource.id,
    }
