"""Application installer content document package."""

from cm_remap.sdm.codec import (
    DEFAULT_FALLBACK_TO_UNPROTECTED_DP,
    DEFAULT_ON_FAST_NETWORK,
    DEFAULT_ON_SLOW_NETWORK,
    DEFAULT_PEER_CACHE,
    DEFAULT_PIN_ON_CLIENT,
    ContentDescriptor,
    ContentFile,
    DecodeResult,
    DeploymentTypeRecord,
    InstallerDocument,
    build_replacement_descriptor,
    decode_document,
    encode_document,
)

__all__ = [
    "DEFAULT_FALLBACK_TO_UNPROTECTED_DP",
    "DEFAULT_ON_FAST_NETWORK",
    "DEFAULT_ON_SLOW_NETWORK",
    "DEFAULT_PEER_CACHE",
    "DEFAULT_PIN_ON_CLIENT",
    "ContentDescriptor",
    "ContentFile",
    "DecodeResult",
    "DeploymentTypeRecord",
    "InstallerDocument",
    "build_replacement_descriptor",
    "decode_document",
    "encode_document",
]
