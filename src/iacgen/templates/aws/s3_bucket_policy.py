"""Bucket policy attached to an S3 bucket."""

from iacgen.ast.spec import Arg

KIND = "aws:s3/bucketPolicy:BucketPolicy"

ATTRIBUTES = ()

ARGS = [
    Arg("Name", "string"),
    Arg("Bucket", "resource:aws:s3_bucket"),
    Arg("Policy", "object", description="IAM policy document"),
]

CREATE = """\
bucket: ${Bucket.id}
policy: ${Policy}
"""
