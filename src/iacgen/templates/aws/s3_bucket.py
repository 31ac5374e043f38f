"""S3 bucket, optionally configured for static website hosting."""

from iacgen.ast.spec import Arg

KIND = "aws:s3/bucket:Bucket"

ATTRIBUTES = (
    "bucket",
    "bucketDomainName",
    "bucketRegionalDomainName",
    "websiteEndpoint",
)

ARGS = [
    Arg("Name", "string"),
    Arg("ForceDestroy", "boolean", required=False),
    Arg("IndexDocument", "string", required=False),
    Arg("Tags", "object", required=False),
]

CREATE = """\
forceDestroy: ${ForceDestroy}
#TMPL {{- if IndexDocument }}
website:
  indexDocument: ${IndexDocument}
#TMPL {{- end }}
tags: ${Tags}
"""


def infra_exports(resource, args, props):
    return {"BucketName": resource.id}
