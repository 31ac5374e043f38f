"""API Gateway deployment of a REST API."""

from iacgen.ast.spec import Arg

KIND = "aws:apigateway/deployment:Deployment"

ATTRIBUTES = ("invokeUrl", "executionArn")

ARGS = [
    Arg("Name", "string"),
    Arg("RestApi", "resource:aws:rest_api"),
    Arg("Triggers", "object", required=False, description="Values forcing a redeployment"),
]

CREATE = """\
restApi: ${RestApi.id}
triggers: ${Triggers}
"""
