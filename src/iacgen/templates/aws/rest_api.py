"""API Gateway REST API."""

from iacgen.ast.spec import Arg

KIND = "aws:apigateway/restApi:RestApi"

ATTRIBUTES = ("rootResourceId", "executionArn")

ARGS = [
    Arg("Name", "string"),
    Arg("BinaryMediaTypes", "list[string]", required=False),
]

CREATE = """\
name: ${Name}
binaryMediaTypes: ${BinaryMediaTypes}
"""
