# core/aws_client.py
"""
Centralized AWS client factory to ensure proper credential handling.
This module creates AWS clients with explicit credential configuration.
"""
import boto3
from typing import Optional
from sqs_emitter.core.config import settings
from sqs_emitter.core.logger import logger
from sqs_emitter.schemas.sqs_models import Credentials
import os


def _default_credentials() -> dict:
    """Credentials from settings (which loads from .env) or environment."""
    return {
        "aws_access_key_id": getattr(settings, 'AWS_ACCESS_KEY_ID', None) or os.getenv('AWS_ACCESS_KEY_ID'),
        "aws_secret_access_key": getattr(settings, 'AWS_SECRET_ACCESS_KEY', None) or os.getenv('AWS_SECRET_ACCESS_KEY'),
        "aws_session_token": getattr(settings, 'AWS_SESSION_TOKEN', None) or os.getenv('AWS_SESSION_TOKEN'),
    }


def get_sqs_client(region_name: Optional[str] = None):
    """Get SQS client with proper credentials."""
    try:
        client = boto3.client(
            "sqs",
            region_name=region_name or settings.AWS_REGION,
            **_default_credentials()
        )
        logger.info("SQS client initialized with credentials")
        return client
    except Exception as e:
        logger.error(f"Failed to initialize SQS client: {str(e)}")
        raise


def get_s3_client(region_name: str, credentials: Optional[Credentials] = None):
    """
    Get S3 client for a storage target.

    When assumed-role credentials are given they take precedence over the
    process credentials.
    """
    try:
        if credentials is not None:
            client_credentials = {
                "aws_access_key_id": credentials.access_key_id,
                "aws_secret_access_key": credentials.secret_access_key,
                "aws_session_token": credentials.session_token,
            }
        else:
            client_credentials = _default_credentials()

        client = boto3.client(
            "s3",
            region_name=region_name,
            **client_credentials
        )
        logger.debug(f"S3 client initialized for region {region_name}")
        return client
    except Exception as e:
        logger.error(f"Failed to initialize S3 client: {str(e)}")
        raise


def get_ssm_client():
    """Get SSM client with proper credentials."""
    try:
        client = boto3.client(
            "ssm",
            region_name=settings.AWS_REGION,
            **_default_credentials()
        )
        logger.info("SSM client initialized with credentials")
        return client
    except Exception as e:
        logger.error(f"Failed to initialize SSM client: {str(e)}")
        raise


def get_ram_client():
    """Get RAM client. Shared resources are listed from RAM_REGION."""
    try:
        client = boto3.client(
            "ram",
            region_name=settings.RAM_REGION,
            **_default_credentials()
        )
        logger.info("RAM client initialized with credentials")
        return client
    except Exception as e:
        logger.error(f"Failed to initialize RAM client: {str(e)}")
        raise


def get_sts_client():
    """Get STS client with proper credentials."""
    try:
        client = boto3.client(
            "sts",
            region_name=settings.AWS_REGION,
            **_default_credentials()
        )
        logger.info("STS client initialized with credentials")
        return client
    except Exception as e:
        logger.error(f"Failed to initialize STS client: {str(e)}")
        raise
