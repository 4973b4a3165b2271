"""
Response models for the dataset services
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass
class ApiResponse:
    """
    Standard envelope for service-level responses (health, root)

    Dataset routes answer with their own payloads; the status code carries
    the lifecycle state there.
    """

    status: str
    message: str
    data: Optional[Dict[str, Any]] = None
    errors: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response"""
        result = {"status": self.status, "message": self.message}
        if self.data is not None:
            result["data"] = self.data
        if self.errors is not None:
            result["errors"] = self.errors
        return result

    @classmethod
    def success(cls, message: str, data: Optional[Dict[str, Any]] = None) -> "ApiResponse":
        return cls(status="success", message=message, data=data)

    @classmethod
    def error(cls, message: str, errors: Optional[List[str]] = None) -> "ApiResponse":
        return cls(status="error", message=message, errors=errors)

    @classmethod
    def health_check(
        cls,
        service_name: str,
        version: str,
        description: Optional[str] = None,
        dependencies: Optional[Dict[str, str]] = None,
    ) -> "ApiResponse":
        """Create standardized health check response"""
        health_data: Dict[str, Any] = {"service": service_name, "version": version, "status": "healthy"}
        if description:
            health_data["description"] = description
        if dependencies:
            health_data["dependencies"] = dependencies
            if any(state != "ok" for state in dependencies.values()):
                health_data["status"] = "degraded"
                return cls(status="warning", message="Service is degraded", data=health_data)

        return cls(status="success", message="Service is healthy", data=health_data)

    def is_success(self) -> bool:
        return self.status == "success"
