"""
Uploading of rotated stream files.
"""

from .transport import AwsCliTransport, Boto3Transport, parse_s3_url
from .uploader import UploadResult, Uploader, delete_local_file

__all__ = [
    "Uploader",
    "UploadResult",
    "AwsCliTransport",
    "Boto3Transport",
    "parse_s3_url",
    "delete_local_file",
]
