"""
Core business exceptions for the asset transfer engine.

This module defines a hierarchy of custom exceptions to allow for granular
error handling and clear separation of failure domains. The orchestration
layer decides per failure domain whether a transfer degrades to the original
URL or aborts.
"""


class AssetTransferError(Exception):
    """Base exception for all component-specific errors."""
    pass


# --- Configuration Errors ---

class ConfigurationError(AssetTransferError):
    """Raised for errors related to application configuration."""
    pass


# --- Infrastructure Errors ---

class InfrastructureError(AssetTransferError):
    """Base class for errors related to external systems (network, API, etc.)."""
    pass


class APIError(InfrastructureError):
    """Raised for errors when communicating with the content store API."""
    pass


class UploadError(InfrastructureError):
    """Raised when copying a file to the target location fails."""
    pass


class ContextResolutionError(InfrastructureError):
    """Raised when the web hosting an asset cannot be determined."""
    pass


# --- Domain/Business Logic Errors ---

class DomainError(AssetTransferError):
    """Base class for errors related to business logic failures."""
    pass


class InvalidPageNameError(DomainError):
    """Raised when a page identifier cannot be turned into a folder name."""
    pass


class CacheError(DomainError):
    """Raised when the transfer cache holds conflicting entries for a key."""
    pass
