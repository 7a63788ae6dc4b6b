"""
Sony camera adapter.

This module implements `VendorProvider` for Sony's device management REST API. It owns every
Sony-specific detail: the bearer-token headers, the `/devices` endpoint layout, the translation of
a normalized resource spec into Sony's request schema, and the table that maps Sony's device
status vocabulary onto lifecycle phases. All calls except the health probe go through the shared
resilient executor, so retry and backoff behaviour is identical to every other adapter.

Sony endpoints:
- POST   {base_url}/devices              create a device
- GET    {base_url}/devices/{device_id}  read device state
- PATCH  {base_url}/devices/{device_id}  update device configuration
- DELETE {base_url}/devices/{device_id}  remove the device
- GET    {base_url}/health               connectivity probe
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import requests

from monitoring.metrics import track_vendor_call
from provider_api.base import VendorProvider
from shared.cancellation import CancellationToken
from shared.errors import CancelledError, PreconditionError, VendorPermanentError, VendorTransientError
from shared.models import Phase, ResourceRecord, ResourceStatus, utc_now
from shared.vendor_client import (
    DEFAULT_BASE_DELAY_S,
    DEFAULT_MAX_DELAY_S,
    DEFAULT_MAX_RETRIES,
    execute_and_validate,
    execute_with_retry,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "HDC-5500"

# Sony device status -> (phase, health status)
STATUS_TABLE: Dict[str, Tuple[Phase, str]] = {
    "active": (Phase.RUNNING, "healthy"),
    "inactive": (Phase.PENDING, "unknown"),
    "provisioning": (Phase.PROVISIONING, "unknown"),
    "error": (Phase.FAILED, "unhealthy"),
    "maintenance": (Phase.UPDATING, "degraded"),
}
UNKNOWN_STATUS: Tuple[Phase, str] = (Phase.UNKNOWN, "unknown")

RESOLUTION_TABLE: Dict[str, str] = {
    "SD": "720x480", "480p": "720x480",
    "HD": "1280x720", "720p": "1280x720",
    "FHD": "1920x1080", "1080p": "1920x1080",
    "4K": "3840x2160", "2160p": "3840x2160", "UHD": "3840x2160",
    "8K": "7680x4320", "4320p": "7680x4320",
}

CODEC_TABLE: Dict[str, str] = {
    "H.265/HEVC": "H.265",
    "HEVC": "H.265",
}

# Sony's latency names are one notch more aggressive than ours.
LATENCY_TABLE: Dict[str, str] = {
    "low": "ultra_low",
    "normal": "low",
    "high": "normal",
}

STREAM_PROTOCOLS: Tuple[Tuple[str, str], ...] = (
    ("rtmp://", "RTMP"),
    ("srt://", "SRT"),
    ("rtsp://", "RTSP"),
    ("ndi://", "NDI"),
)


def map_resolution(resolution: str) -> str:
    """Translate a named resolution to Sony's WxH form; pixel strings pass through."""
    return RESOLUTION_TABLE.get(resolution, resolution)


def map_codec(codec: str) -> str:
    return CODEC_TABLE.get(codec, codec)


def map_latency_mode(mode: str) -> str:
    return LATENCY_TABLE.get(mode, "low")


def detect_stream_protocol(url: str) -> str:
    for prefix, protocol in STREAM_PROTOCOLS:
        if url.startswith(prefix):
            return protocol
    return "RTMP"


def _first(payload: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key; Sony firmware versions disagree on snake vs camel case."""
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return default


class SonyProvider(VendorProvider):
    """
    Adapter for Sony broadcast cameras.

    Args:
        base_url (str): Sony API root, e.g. "http://localhost:9000".
        api_key (str): Bearer token sent on every request.
        session (Optional[requests.Session]): HTTP session; a new one is created if omitted.
        max_retries (int): Executor retries for create/read/update/delete.
        base_delay_s (float): Executor backoff base.
        max_delay_s (float): Executor backoff cap.
    """

    vendor = "sony"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        session: Optional[requests.Session] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay_s: float = DEFAULT_BASE_DELAY_S,
        max_delay_s: float = DEFAULT_MAX_DELAY_S,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.session = session if session is not None else requests.Session()
        self.max_retries = max_retries
        self.base_delay_s = base_delay_s
        self.max_delay_s = max_delay_s

    # --- request plumbing ---

    def _headers(self, resource_id: str = "", with_body: bool = False) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }
        if with_body:
            headers["Content-Type"] = "application/json"
        if resource_id:
            headers["X-Forge-Resource-ID"] = resource_id
        return headers

    def _execute(self, method: str, path: str, token: CancellationToken, **kwargs: Any) -> requests.Response:
        return execute_with_retry(
            self.session,
            method,
            f"{self.base_url}{path}",
            token,
            max_retries=self.max_retries,
            base_delay_s=self.base_delay_s,
            max_delay_s=self.max_delay_s,
            **kwargs,
        )

    @staticmethod
    def _parse(response: requests.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise VendorPermanentError(
                f"Failed to parse Sony API response: {exc}", status_code=response.status_code
            ) from exc
        if not isinstance(payload, dict):
            raise VendorPermanentError(
                "Sony API response is not a JSON object", status_code=response.status_code
            )
        return payload

    @staticmethod
    def _unexpected(response: requests.Response) -> VendorPermanentError:
        return VendorPermanentError(
            f"Sony API returned status {response.status_code}: {response.text}",
            status_code=response.status_code,
        )

    # --- translation ---

    def build_request(self, resource: ResourceRecord) -> Dict[str, Any]:
        """
        Translate a normalized resource into Sony's device request schema.

        Optional sections (stream, recording, network, tally) are only included when the
        corresponding config keys enable them, matching what Sony expects for a minimal device.
        """
        config = resource.spec.config
        request: Dict[str, Any] = {
            "device_name": resource.name,
            "model": self.config_str(config, "sony_model", DEFAULT_MODEL),
            "settings": {},
            "metadata": {
                "forge_id": resource.id,
                "forge_namespace": resource.namespace,
                "forge_type": resource.type,
            },
        }

        ip_address = self.config_str(config, "ip_address")
        if ip_address:
            request["ip_address"] = ip_address
        port = self.config_int(config, "port")
        if port > 0:
            request["port"] = port

        resolution = self.config_str(config, "resolution")
        frame_rate = self.config_float(config, "frame_rate")
        codec = self.config_str(config, "codec")
        if resolution:
            request["settings"]["resolution"] = map_resolution(resolution)
        if frame_rate > 0:
            request["settings"]["frame_rate"] = f"{frame_rate:.2f}"
        if codec:
            request["settings"]["codec"] = codec

        stream_url = self.config_str(config, "stream_url")
        if stream_url:
            request["stream_config"] = {
                "enabled": True,
                "protocol": detect_stream_protocol(stream_url),
                "destination_url": stream_url,
                "resolution": map_resolution(resolution),
                "bitrate": self.config_int(config, "bitrate") // 1000,  # bps -> kbps
                "frame_rate": frame_rate,
                "codec": map_codec(codec),
                "latency_mode": map_latency_mode(self.config_str(config, "latency_mode")),
            }

        if self.config_bool(config, "recording_enabled"):
            request["recording_config"] = {
                "enabled": True,
                "storage_path": self.config_str(config, "recording_path"),
                "format": self.config_str(config, "recording_format", "MXF"),
                "quality": self.config_str(config, "recording_quality", "production"),
                "retention_days": self.config_int(config, "retention_days"),
            }

        vlan_id = self.config_int(config, "vlan_id")
        if vlan_id > 0:
            request["network_config"] = {
                "primary_interface": self.config_str(config, "network_interface", "eth0"),
                "vlan_id": vlan_id,
                "mtu": self.config_int(config, "mtu", 1500),
            }

        if self.config_bool(config, "tally_enabled"):
            request["tally_config"] = {
                "enabled": True,
                "color": self.config_str(config, "tally_color", "red"),
                "control_protocol": self.config_str(config, "tally_protocol", "TSL"),
                "control_address": self.config_str(config, "tally_address"),
            }

        return request

    def build_status(self, payload: Dict[str, Any]) -> ResourceStatus:
        """
        Normalize a Sony device response into a `ResourceStatus` using `STATUS_TABLE`.

        Raises:
            VendorPermanentError: A field has a value of the wrong type, e.g. a non-numeric
                bitrate.
        """
        try:
            return self._normalize_status(payload)
        except (TypeError, ValueError) as exc:
            raise VendorPermanentError(f"Failed to parse Sony API response: {exc}") from exc

    def _normalize_status(self, payload: Dict[str, Any]) -> ResourceStatus:
        sony_status = str(_first(payload, "status", default=""))
        phase, health = STATUS_TABLE.get(sony_status, UNKNOWN_STATUS)
        now = utc_now()

        status = ResourceStatus(
            phase=phase,
            message=str(_first(payload, "message", default="")),
            vendorId=str(_first(payload, "device_id", "deviceId", default="")),
            healthStatus=health,
            errorCount=1 if phase is Phase.FAILED else 0,
            lastHealthCheck=now,
            lastSuccessfulOperation=now,
        )

        stream = _first(payload, "stream_status", "streamStatus")
        if isinstance(stream, dict):
            status.metrics["currentBitrate"] = int(_first(stream, "current_bitrate", "currentBitrate", default=0)) * 1000
            status.metrics["droppedFrames"] = int(_first(stream, "dropped_frames", "droppedFrames", default=0))
            status.metrics["connectionCount"] = int(_first(stream, "viewer_count", "viewerCount", default=0))
            status.metrics["isStreaming"] = bool(_first(stream, "is_streaming", "isStreaming", default=False))
            uptime = int(_first(stream, "uptime_seconds", "uptimeSeconds", default=0))
            if uptime > 0:
                status.metrics["uptimeSeconds"] = uptime

        health_metrics = _first(payload, "health_metrics", "healthMetrics")
        if isinstance(health_metrics, dict):
            for source, target in (
                ("cpu_usage_percent", "cpuUsagePercent"),
                ("memory_usage_percent", "memoryUsagePercent"),
                ("temperature_celsius", "temperatureCelsius"),
            ):
                if source in health_metrics:
                    status.metrics[target] = health_metrics[source]

        return status

    # --- VendorProvider ---

    @track_vendor_call("create")
    def create(self, resource: ResourceRecord, token: CancellationToken) -> ResourceStatus:
        body = self.build_request(resource)
        response = self._execute(
            "POST", "/devices", token,
            headers=self._headers(resource.id, with_body=True),
            json=body,
        )
        if response.status_code not in (200, 201):
            raise self._unexpected(response)
        status = self.build_status(self._parse(response))
        if not status.vendorId:
            raise VendorPermanentError(
                "Sony API accepted the device but returned no device_id",
                status_code=response.status_code,
            )
        logger.info(f"[create] Sony device {status.vendorId} created for resource {resource.id} ({status.phase.value})")
        return status

    @track_vendor_call("read")
    def read(self, vendor_id: str, token: CancellationToken) -> ResourceStatus:
        response = self._execute("GET", f"/devices/{vendor_id}", token, headers=self._headers())
        if response.status_code == 404:
            logger.warning(f"[read] Sony device {vendor_id} not found")
            return ResourceStatus(
                phase=Phase.FAILED,
                message="Device not found in Sony system",
                vendorId=vendor_id,
                healthStatus="unhealthy",
                lastHealthCheck=utc_now(),
            )
        if response.status_code != 200:
            raise self._unexpected(response)
        status = self.build_status(self._parse(response))
        # Older firmware omits the id on GET; the caller's id is authoritative.
        status.vendorId = status.vendorId or vendor_id
        return status

    @track_vendor_call("update")
    def update(self, resource: ResourceRecord, token: CancellationToken) -> ResourceStatus:
        vendor_id = resource.status.vendorId
        if not vendor_id:
            raise PreconditionError(f"cannot update resource {resource.id} without vendor ID")
        response = execute_and_validate(
            self.session,
            "PATCH",
            f"{self.base_url}/devices/{vendor_id}",
            token,
            max_retries=self.max_retries,
            base_delay_s=self.base_delay_s,
            max_delay_s=self.max_delay_s,
            headers=self._headers(resource.id, with_body=True),
            json=self.build_request(resource),
        )
        if response.status_code != 200:
            raise self._unexpected(response)
        status = self.build_status(self._parse(response))
        status.vendorId = status.vendorId or vendor_id
        return status

    @track_vendor_call("delete")
    def delete(self, vendor_id: str, token: CancellationToken) -> None:
        response = self._execute("DELETE", f"/devices/{vendor_id}", token, headers=self._headers())
        if response.status_code in (200, 204, 404):
            if response.status_code == 404:
                logger.info(f"[delete] Sony device {vendor_id} already absent")
            return
        raise self._unexpected(response)

    @track_vendor_call("health_check")
    def health_check(self, token: CancellationToken) -> None:
        token.raise_if_cancelled("Sony health check")
        timeout = token.remaining()
        try:
            # Single attempt outside the executor: no retry, no backoff.
            response = self.session.get(
                f"{self.base_url}/health",
                headers=self._headers(),
                timeout=timeout if timeout is not None else 5.0,
            )
        except requests.RequestException as exc:
            if token.cancelled:
                raise CancelledError(f"Sony health check cancelled: {token.reason}") from exc
            raise VendorTransientError(f"Sony API health check failed: {exc}") from exc
        if response.status_code != 200:
            raise VendorTransientError(
                f"Sony API unhealthy (status {response.status_code}): {response.text}",
                status_code=response.status_code,
            )
