"""Archivist rich error messages: actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from archivist.cli.errors import err_no_api_key
    console.print(err_no_api_key("gemini"))
    raise typer.Exit(1)
"""

from __future__ import annotations

_ENV_MAP = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "azure": "AZURE_API_KEY",
}


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'gemini'. Set:  export GEMINI_API_KEY=...
    """
    env_var = _ENV_MAP.get(provider.lower(), f"{provider.upper()}_API_KEY")
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=..."
    )


def err_no_db(db_path: str) -> str:
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  archivist ingest <export.json>  to create it."
    )


def err_dimension_mismatch(stored: int, configured: int, model: str) -> str:
    """Configured embedding size differs from the one the store was built with."""
    return (
        "[red]Error:[/] Embedding dimension mismatch.\n"
        f"  Database vectors:  {stored} dimensions\n"
        f"  Config ({model}):  {configured} dimensions\n"
        "  Set embedding.dimensions (and model) in archivist.yaml to match the database,\n"
        "  or point db.path at a new database."
    )


def err_config(message: str) -> str:
    return f"[red]Error:[/] Invalid configuration.\n  {message}"


def err_file_not_found(path: str) -> str:
    return f"[red]Error:[/] File not found: '{path}'"


def err_unsupported_platform(platform: str, supported: list[str]) -> str:
    return (
        f"[red]Error:[/] Unsupported platform '{platform}'.\n"
        f"  Supported: {', '.join(supported)}"
    )


def err_import_failed(path: str, message: str) -> str:
    return (
        f"[red]Error:[/] Could not read export '{path}'.\n"
        f"  {message}\n"
        "  Check that the file is an unmodified platform export."
    )


def err_not_found(kind: str, entity_id: str) -> str:
    return (
        f"[yellow]{kind.capitalize()} not found:[/] '{entity_id}'\n"
        "  Run:  archivist status  to see what is archived."
    )


def err_missing_target(options: str) -> str:
    return f"[red]Error:[/] Nothing to process.\n  Pass {options}."


def err_validation(message: str) -> str:
    return (
        f"[red]Error:[/] {message}\n"
        "  The model returned output that does not match the expected schema.\n"
        "  Try again, or use a stronger model (llm.model in archivist.yaml)."
    )


def err_provider(message: str) -> str:
    return (
        f"[red]Error:[/] Provider unavailable: {message}\n"
        "  Check your network connection and provider status, then retry."
    )


def warn_partial_failure(failed: int, total: int) -> str:
    return f"[yellow]⚠[/] {failed} of {total} items failed. Re-run the same command to retry them."
