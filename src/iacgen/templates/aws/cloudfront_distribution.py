"""CloudFront distribution.

When the default cache behavior does not name its target origin, the id
of the first origin is used.
"""

from iacgen.ast.spec import Arg

KIND = "aws:cloudfront/distribution:Distribution"

ATTRIBUTES = ("domainName", "hostedZoneId", "status")

ARGS = [
    Arg("Name", "string"),
    Arg("Origins", "list[object]"),
    Arg("CloudfrontDefaultCertificate", "boolean"),
    Arg("Enabled", "boolean"),
    Arg("DefaultCacheBehavior", "object"),
    Arg("Restrictions", "object"),
    Arg("DefaultRootObject", "string", required=False),
]

CREATE = """\
origins: ${Origins}
enabled: ${Enabled}
viewerCertificate:
  cloudfrontDefaultCertificate: ${CloudfrontDefaultCertificate}
#TMPL {{- if DefaultCacheBehavior.targetOriginId }}
defaultCacheBehavior: ${DefaultCacheBehavior}
#TMPL {{- else }}
#TMPL defaultCacheBehavior:
#TMPL   $merge: ${DefaultCacheBehavior}
#TMPL   targetOriginId: {{ Origins[0].originId }}
#TMPL {{- end }}
restrictions: ${Restrictions}
#TMPL {{- if DefaultRootObject }}
defaultRootObject: ${DefaultRootObject}
#TMPL {{- end }}
"""


def infra_exports(resource, args, props):
    return {"Domain": resource.attribute("domainName")}
