# utils/permissions.py
"""
IAM statements a consuming service needs so the emitter can locate and write
to the shared content storage.
"""
from typing import Any, Dict, List, Tuple

from sqs_emitter.core.config import settings


def _statements() -> List[Dict[str, Any]]:
    return [
        {
            "action": ["ssm:GetParameter"],
            "resource": f"arn:aws:ssm:{settings.RAM_REGION}:*:parameter{settings.STORAGE_PARAMETER_NAME}",
        },
        {
            "action": ["ram:ListResources"],
            "resource": "*",
        },
        {
            "action": "sts:AssumeRole",
            "resource": f"arn:aws:iam::*:role/{settings.REMOTE_STORAGE_ROLE_NAME}",
        },
    ]


sqs_permissions: List[Tuple[str, Dict[str, Any]]] = [
    ("iamStatement", statement) for statement in _statements()
]
