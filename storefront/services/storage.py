import io, uuid
from minio import Minio
from storefront.core.config import settings

def _endpoint() -> str:
    return settings.S3_ENDPOINT.replace("http://", "").replace("https://", "")

def _client():
    return Minio(_endpoint(), access_key=settings.S3_ACCESS_KEY, secret_key=settings.S3_SECRET_KEY, secure=settings.S3_SECURE)

def ensure_bucket(bucket: str):
    c = _client()
    if not c.bucket_exists(bucket):
        c.make_bucket(bucket)

def public_url(bucket: str, key: str) -> str:
    scheme = "https" if settings.S3_SECURE else "http"
    return f"{scheme}://{_endpoint()}/{bucket}/{key}"

def upload_bytes(bucket: str, prefix: str, data: bytes, content_type: str, ext: str = ""):
    """Store ``data`` under ``<prefix>/<random>.<ext>`` and return (object_key, public_url)."""
    ensure_bucket(bucket)
    key = f"{prefix}/{uuid.uuid4().hex}{ext}"
    c = _client()
    c.put_object(bucket, key, io.BytesIO(data), length=len(data), content_type=content_type)
    return key, public_url(bucket, key)

def file_ext(filename: str | None) -> str:
    if filename and "." in filename:
        return "." + filename.rsplit(".", 1)[-1].lower()
    return ""
