"""Management-plane adapter for the site's AdminService REST endpoint."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests
from requests_ntlm import HttpNtlmAuth

from cm_remap.config import SiteConfig
from cm_remap.errors import RemapError
from cm_remap.models import ContentObject, ObjectKind
from cm_remap.plane.base import ContextHandle

LOGGER = logging.getLogger(__name__)


class AdminServiceError(RemapError):
    """An AdminService request failed or returned an unexpected payload."""


@dataclass(frozen=True, slots=True)
class KindMapping:
    """WMI class and property names backing one object kind."""

    wmi_class: str
    key_property: str
    name_property: str
    path_property: str
    key_is_string: bool = True
    filter_expr: str | None = None


KIND_MAPPINGS: dict[ObjectKind, KindMapping] = {
    "Driver": KindMapping("SMS_Driver", "CI_ID", "LocalizedDisplayName", "ContentSourcePath", key_is_string=False),
    "DriverPackage": KindMapping("SMS_DriverPackage", "PackageID", "Name", "PkgSourcePath"),
    "UpdatePackage": KindMapping("SMS_SoftwareUpdatesPackage", "PackageID", "Name", "PkgSourcePath"),
    "StandardPackage": KindMapping("SMS_Package", "PackageID", "Name", "PkgSourcePath", filter_expr="PackageType eq 0"),
    "Application": KindMapping(
        "SMS_Application",
        "CI_ID",
        "LocalizedDisplayName",
        "SDMPackageXML",
        key_is_string=False,
        filter_expr="IsLatest eq true",
    ),
    "OSImage": KindMapping("SMS_ImagePackage", "PackageID", "Name", "PkgSourcePath"),
}


def _error_body_snippet(response: requests.Response, max_chars: int = 200) -> str:
    text = (response.text or "").strip().replace("\n", " ")
    return text[:max_chars]


class AdminServiceClient:
    """``ManagementPlane`` implementation over ``https://<server>/AdminService/wmi``."""

    def __init__(self, site: SiteConfig, session_factory: Any = requests.Session) -> None:
        self.site = site
        self._session_factory = session_factory
        self._session: requests.Session | None = None
        self._context = ContextHandle()

    def _base_url(self, server: str) -> str:
        return f"https://{server}/AdminService/wmi"

    def _require_session(self) -> requests.Session:
        if self._session is None or self._context.server is None:
            raise AdminServiceError("no working context established")
        return self._session

    def _instance_url(self, mapping: KindMapping, object_id: str) -> str:
        key = f"'{object_id}'" if mapping.key_is_string else object_id
        return f"{self._base_url(str(self._context.server))}/{mapping.wmi_class}({key})"

    def _get_json(self, url: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        session = self._require_session()
        try:
            response = session.get(url, params=params, timeout=self.site.timeout_seconds)
        except requests.RequestException as exc:
            raise AdminServiceError(f"GET {url} failed: {exc}") from exc
        if response.status_code >= 400:
            raise AdminServiceError(f"GET {url} failed: {response.status_code} {_error_body_snippet(response)}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise AdminServiceError(f"GET {url} returned non-JSON payload") from exc
        if not isinstance(payload, dict):
            raise AdminServiceError(f"GET {url} returned unexpected payload")
        return payload

    def _get_values(self, url: str, params: dict[str, str] | None = None) -> list[dict[str, Any]]:
        values: list[dict[str, Any]] = []
        next_url: str | None = url
        next_params = params
        while next_url:
            payload = self._get_json(next_url, params=next_params)
            batch = payload.get("value", [])
            if not isinstance(batch, list):
                raise AdminServiceError(f"GET {next_url} returned a non-list 'value'")
            values.extend(item for item in batch if isinstance(item, dict))
            next_url = payload.get("@odata.nextLink")
            next_params = None
        return values

    def current_context(self) -> ContextHandle:
        return self._context

    def establish_context(self, server: str, site_code: str) -> ContextHandle:
        session = self._session_factory()
        session.verify = self.site.verify_tls
        if self.site.username:
            session.auth = HttpNtlmAuth(self.site.username, self.site.password or "")
        session.headers.update({"Accept": "application/json"})

        previous_session = self._session
        previous_context = self._context
        self._session = session
        self._context = ContextHandle(server=server, site_code=site_code)
        try:
            sites = self._get_values(
                f"{self._base_url(server)}/SMS_Site",
                params={"$filter": f"SiteCode eq '{site_code}'"},
            )
        except AdminServiceError:
            session.close()
            self._session = previous_session
            self._context = previous_context
            raise
        if not sites:
            session.close()
            self._session = previous_session
            self._context = previous_context
            raise AdminServiceError(f"site {site_code} not found on {server}")

        LOGGER.info("admin_service.context_established server=%s site_code=%s", server, site_code)
        return self._context

    def restore_context(self, previous: ContextHandle) -> None:
        if self._session is not None and previous != self._context:
            self._session.close()
            self._session = None
        self._context = previous
        LOGGER.info("admin_service.context_restored server=%s site_code=%s", previous.server, previous.site_code)

    def enumerate(self, kind: ObjectKind) -> list[ContentObject]:
        mapping = KIND_MAPPINGS[kind]
        url = f"{self._base_url(str(self._context.server))}/{mapping.wmi_class}"
        params = {"$filter": mapping.filter_expr} if mapping.filter_expr else None
        objects: list[ContentObject] = []
        for item in self._get_values(url, params=params):
            object_id = str(item.get(mapping.key_property, ""))
            identity = str(item.get(mapping.name_property) or object_id)
            if kind == "Application":
                # SDMPackageXML is a lazy property: only returned by a per-instance GET.
                # A failed fetch leaves the document empty so only this object fails downstream.
                try:
                    detail = self._get_values(self._instance_url(mapping, object_id))
                except AdminServiceError as exc:
                    LOGGER.warning(
                        "admin_service.document_fetch_failed kind=%s object_id=%s error=%s",
                        kind,
                        object_id,
                        exc,
                    )
                    detail = []
                document = detail[0].get(mapping.path_property) if detail else None
                objects.append(ContentObject(kind=kind, object_id=object_id, identity=identity, document=document))
            else:
                objects.append(
                    ContentObject(
                        kind=kind,
                        object_id=object_id,
                        identity=identity,
                        source_path=str(item.get(mapping.path_property) or ""),
                    )
                )
        LOGGER.debug("admin_service.enumerated kind=%s count=%s", kind, len(objects))
        return objects

    def persist(
        self,
        obj: ContentObject,
        *,
        new_path: str | None = None,
        document: str | bytes | None = None,
    ) -> None:
        mapping = KIND_MAPPINGS[obj.kind]
        if obj.kind == "Application":
            if document is None:
                raise AdminServiceError(f"{obj.identity}: application update requires a document")
            value = document.decode("utf-8") if isinstance(document, bytes) else document
        else:
            if new_path is None:
                raise AdminServiceError(f"{obj.identity}: update requires a new path")
            value = new_path

        session = self._require_session()
        url = self._instance_url(mapping, obj.object_id)
        try:
            response = session.patch(url, json={mapping.path_property: value}, timeout=self.site.timeout_seconds)
        except requests.RequestException as exc:
            raise AdminServiceError(f"PATCH {url} failed: {exc}") from exc
        if response.status_code >= 400:
            raise AdminServiceError(f"PATCH {url} failed: {response.status_code} {_error_body_snippet(response)}")
        LOGGER.debug("admin_service.persisted kind=%s object_id=%s", obj.kind, obj.object_id)
