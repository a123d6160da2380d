"""
PDF renderer interface for quotation artifacts.

Defines the contract every renderer implements and the call log shared by
all of them.
"""

import json
import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from functools import wraps
from typing import Any, Dict, List, Optional

from ..branding.company_profile import CompanyProfile
from ..errors import GenerationError
from ..storage.models import LineItem


@dataclass
class RenderInputs:
    """Everything a renderer needs for one quotation PDF."""

    document_id: str
    line_items: List[LineItem]
    branding: CompanyProfile
    logo_image: Optional[bytes]
    signature_image: Optional[bytes]
    signer_version: Optional[datetime]
    content_hash: str
    password: str
    document: Dict[str, Any] = field(default_factory=dict)
    signer: Dict[str, Any] = field(default_factory=dict)


def _append_log_entry(log_entry: Dict[str, Any]) -> None:
    log_dir = os.getenv("RENDER_LOG_DIR", "logs")
    if os.path.isdir(log_dir) and not os.access(log_dir, os.W_OK):
        log_dir = "/tmp/logs"
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, "render_calls.log")

    with open(log_path, "a") as f:
        f.write(json.dumps(log_entry) + "\n")


def log_render_call(func):
    """
    Decorator to log renderer calls with timing and output size.

    Logs to logs/render_calls.log in JSON format:
    {"ts": timestamp, "renderer": name, "document_id": id, "latency_ms": X, "bytes_out": Y}
    """

    @wraps(func)
    def wrapper(self, inputs: RenderInputs, *args, **kwargs):
        start_time = time.time()
        renderer_info = self.get_renderer_info() if hasattr(self, "get_renderer_info") else {}
        renderer_name = renderer_info.get("name", "unknown")

        try:
            result = func(self, inputs, *args, **kwargs)
        except Exception as e:
            _append_log_entry(
                {
                    "ts": datetime.now().isoformat(),
                    "renderer": renderer_name,
                    "document_id": inputs.document_id,
                    "latency_ms": int((time.time() - start_time) * 1000),
                    "bytes_out": None,
                    "error": str(e),
                    "status": "failed",
                }
            )
            raise

        _append_log_entry(
            {
                "ts": datetime.now().isoformat(),
                "renderer": renderer_name,
                "document_id": inputs.document_id,
                "latency_ms": int((time.time() - start_time) * 1000),
                "bytes_out": len(result) if result else 0,
                "has_logo": inputs.logo_image is not None,
                "has_signature": inputs.signature_image is not None,
            }
        )
        return result

    return wrapper


class PdfRenderer(ABC):
    """Abstract base class for quotation PDF renderers."""

    @abstractmethod
    def render(self, inputs: RenderInputs) -> bytes:
        """
        Render a quotation PDF.

        Args:
            inputs: Line items, branding and signature image for the document

        Returns:
            PDF bytes

        Raises:
            RendererError: If rendering fails
        """
        pass

    @abstractmethod
    def get_renderer_info(self) -> Dict[str, Any]:
        """
        Get information about the renderer.

        Returns:
            Dictionary with renderer metadata (name, template, etc.)
        """
        pass


class RendererError(GenerationError):
    """Raised when the renderer fails or returns an unusable response."""

    pass
