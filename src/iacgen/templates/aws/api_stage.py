"""API Gateway stage.

Exposes the stage's invoke URL as `Url` and its bare domain as the
`StageInvokeUrl` property.
"""

from iacgen.ast.spec import Arg

KIND = "aws:apigateway/stage:Stage"

ATTRIBUTES = ("invokeUrl", "executionArn")

ARGS = [
    Arg("Name", "string"),
    Arg("RestApi", "resource:aws:rest_api"),
    Arg("Deployment", "resource:aws:api_deployment"),
    Arg("StageName", "string"),
]

CREATE = """\
deployment: ${Deployment.id}
restApi: ${RestApi.id}
stageName: ${StageName}
"""


def invoke_url_domain(url: str) -> str:
    # https://abc.execute-api.region.amazonaws.com/prod -> abc.execute-api.region.amazonaws.com
    return url.split("//")[1].split("/")[0]


def properties(resource, args):
    return {"StageInvokeUrl": resource.attribute("invokeUrl").map(invoke_url_domain)}


def infra_exports(resource, args, props):
    return {"Url": resource.attribute("invokeUrl")}
