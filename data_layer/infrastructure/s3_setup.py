"""S3 bucket oluşturma ve silme.

Bucket yapısı:
  stockout-exports-{account_id}/
  ├── exports/
  └── audit-logs/
"""
import boto3
import os
import sys
from botocore.exceptions import ClientError

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
from stockout.config import get_settings

settings = get_settings()
REGION = settings.aws_region
BUCKET_PREFIX = "stockout-exports"


def get_bucket_name(region: str = REGION) -> str:
    """STOCKOUT_EXPORT_BUCKET yoksa account ID ile unique bucket adı oluşturur."""
    if settings.export_bucket:
        return settings.export_bucket
    sts = boto3.client("sts", region_name=region)
    account_id = sts.get_caller_identity()["Account"]
    return f"{BUCKET_PREFIX}-{account_id}"


def create_bucket(region: str = REGION) -> str:
    """S3 bucket oluşturur."""
    s3 = boto3.client("s3", region_name=region, config=settings.boto_config)
    bucket_name = get_bucket_name(region)

    try:
        if region == "us-east-1":
            s3.create_bucket(Bucket=bucket_name)
        else:
            s3.create_bucket(
                Bucket=bucket_name,
                CreateBucketConfiguration={"LocationConstraint": region},
            )
        print(f"  ✓ Bucket oluşturuldu: {bucket_name}")
    except ClientError as e:
        if e.response["Error"]["Code"] in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
            print(f"  ⏭️  Bucket zaten mevcut: {bucket_name}")
        else:
            raise

    # Dışa aktarmalar 7 gün sonra silinir; audit kopyaları kalıcıdır
    s3.put_bucket_lifecycle_configuration(
        Bucket=bucket_name,
        LifecycleConfiguration={"Rules": [{
            "ID": "expire-exports",
            "Filter": {"Prefix": "exports/"},
            "Status": "Enabled",
            "Expiration": {"Days": 7},
        }]},
    )
    return bucket_name


def delete_bucket(region: str = REGION):
    """Bucket'ı içeriğiyle birlikte siler."""
    s3 = boto3.resource("s3", region_name=region)
    bucket_name = get_bucket_name(region)
    try:
        bucket = s3.Bucket(bucket_name)
        bucket.objects.all().delete()
        bucket.delete()
        print(f"  🗑️  {bucket_name} silindi")
    except ClientError:
        print(f"  ⏭️  {bucket_name} bulunamadı, atlanıyor")
