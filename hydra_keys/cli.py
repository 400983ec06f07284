"""
hydra-keys CLI — entry point for all operations.

Usage:
    hydra-keys init                          # Create ~/.hydra-keys/config.json
    hydra-keys provider list [--status]      # Known providers
    hydra-keys provider add <name>           # Store a service key
    hydra-keys provider remove <name>
    hydra-keys provider validate <name>
    hydra-keys key create [provider]         # Mint a key (shown once)
    hydra-keys key list <provider> [--json]
    hydra-keys key show <provider> <id>
    hydra-keys key delete <provider> <id>
    hydra-keys key export <provider> [-o file]
    hydra-keys config {get,set,show,path}
    hydra-keys storage {status,migrate}
    hydra-keys plugin {list,add,remove}
    hydra-keys version
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from hydra_keys.config import Settings, get_config
from hydra_keys.config_store import MISSING, ConfigStore, get_value, parse_value, set_value
from hydra_keys.errors import HydraKeysError, SchemaViolationError
from hydra_keys.lifecycle import CredentialBroker, key_to_dict, new_key_document
from hydra_keys.logging_config import setup_logging
from hydra_keys.providers import CreateKeyOptions, KeyResult
from hydra_keys.providers.resolver import ProviderConfigResolver
from hydra_keys.registry import ProviderRegistry, build_registry
from hydra_keys.schema import LIMIT_RESETS, STORAGE_BACKENDS, default_config
from hydra_keys.storage import StorageManager

logger = logging.getLogger(__name__)


@dataclass
class Context:
    settings: Settings
    config_store: ConfigStore
    storage: StorageManager
    registry: ProviderRegistry
    broker: CredentialBroker


def build_context(settings: Settings | None = None, keyring_backend: Any | None = None) -> Context:
    """Wire stores, registry and broker once for this process."""
    settings = settings or get_config()
    config_store = ConfigStore(settings.config_path)
    storage = StorageManager(settings.service_name, keyring_backend=keyring_backend)
    resolver = ProviderConfigResolver(config_store, storage)

    plugins: list[str] = []
    if config_store.exists():
        try:
            plugins = config_store.load().plugins
        except SchemaViolationError as e:
            # Commands that need the config report this themselves
            logger.debug("Skipping plugins, config invalid: %s", e)

    registry = build_registry(
        resolver,
        plugins=plugins,
        timeout=settings.http_timeout,
        validate_timeout=settings.validate_timeout,
    )
    broker = CredentialBroker(registry, config_store, storage, resolver)
    return Context(settings, config_store, storage, registry, broker)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hydra-keys",
        description="hydra-keys — create, list and delete provider API keys from one place.",
    )
    parser.add_argument("--version", action="store_true", help="Show version and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging to stderr")

    subparsers = parser.add_subparsers(dest="command")

    # init
    init_parser = subparsers.add_parser("init", help="Initialize configuration")
    init_parser.add_argument(
        "--force", "-f", action="store_true", help="Overwrite an existing config"
    )

    # provider
    prov_parser = subparsers.add_parser("provider", help="Manage provider service keys")
    prov_sub = prov_parser.add_subparsers(dest="provider_command")
    prov_list = prov_sub.add_parser("list", help="List available providers")
    prov_list.add_argument("--status", "-s", action="store_true", help="Show configuration status")
    prov_add = prov_sub.add_parser("add", help="Configure a provider")
    prov_add.add_argument("provider", help="Provider name")
    prov_add.add_argument(
        "--service-key", help="Service/admin key (prompted if omitted; prefer the prompt)"
    )
    prov_add.add_argument(
        "--set",
        dest="settings",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Provider setting, e.g. projectId=abc (repeatable)",
    )
    prov_add.add_argument(
        "--no-validate", action="store_true", help="Store the key without checking it"
    )
    prov_remove = prov_sub.add_parser("remove", help="Remove a provider configuration")
    prov_remove.add_argument("provider", help="Provider name")
    prov_remove.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")
    prov_validate = prov_sub.add_parser("validate", help="Check the stored service key")
    prov_validate.add_argument("provider", help="Provider name")

    # key
    key_parser = subparsers.add_parser("key", help="Create, list and delete API keys")
    key_sub = key_parser.add_subparsers(dest="key_command")
    key_create = key_sub.add_parser("create", help="Create a new API key")
    key_create.add_argument("provider", nargs="?", help="Provider name (default: defaults.provider)")
    key_create.add_argument("--name", "-n", help="Key name")
    key_create.add_argument("--limit", "-l", type=float, help="Spending/usage limit")
    key_create.add_argument("--reset", "-r", choices=LIMIT_RESETS, help="Limit reset period")
    key_create.add_argument("--expires", "-e", type=_iso_datetime, help="Expiration (ISO 8601)")
    key_create.add_argument("--output", "-o", help="Save the new key to a file (mode 600)")
    key_list = key_sub.add_parser("list", help="List keys for a provider")
    key_list.add_argument("provider", help="Provider name")
    key_list.add_argument("--json", action="store_true", help="Output as JSON")
    key_show = key_sub.add_parser("show", help="Show details for one key")
    key_show.add_argument("provider", help="Provider name")
    key_show.add_argument("key_id", help="Key ID")
    key_show.add_argument("--json", action="store_true", help="Output as JSON")
    key_delete = key_sub.add_parser("delete", help="Delete an API key")
    key_delete.add_argument("provider", help="Provider name")
    key_delete.add_argument("key_id", help="Key ID")
    key_delete.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")
    key_export = key_sub.add_parser("export", help="Export key metadata to JSON")
    key_export.add_argument("provider", help="Provider name")
    key_export.add_argument("--output", "-o", help="Output file path")

    # config
    cfg_parser = subparsers.add_parser("config", help="Read and edit configuration")
    cfg_sub = cfg_parser.add_subparsers(dest="config_command")
    cfg_get = cfg_sub.add_parser("get", help="Get a value (dot notation)")
    cfg_get.add_argument("key", help="e.g. storage.backend")
    cfg_set = cfg_sub.add_parser("set", help="Set a value (dot notation)")
    cfg_set.add_argument("key", help="e.g. defaults.provider")
    cfg_set.add_argument("value", help="Value (true/false, numbers and JSON are parsed)")
    cfg_sub.add_parser("show", help="Show all configuration")
    cfg_sub.add_parser("path", help="Print the config file path")

    # storage
    st_parser = subparsers.add_parser("storage", help="Secret storage backends")
    st_sub = st_parser.add_subparsers(dest="storage_command")
    st_sub.add_parser("status", help="Show storage status")
    st_migrate = st_sub.add_parser("migrate", help="Migrate secrets to another backend")
    st_migrate.add_argument("--to", choices=STORAGE_BACKENDS, help="Target backend")
    st_migrate.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")

    # plugin
    pl_parser = subparsers.add_parser("plugin", help="Manage external provider plugins")
    pl_sub = pl_parser.add_subparsers(dest="plugin_command")
    pl_sub.add_parser("list", help="List registered plugins")
    pl_add = pl_sub.add_parser("add", help="Register a plugin module")
    pl_add.add_argument("module", help="Importable module exposing register_providers()")
    pl_add.add_argument("--pip", metavar="PACKAGE", help="pip install this package first")
    pl_remove = pl_sub.add_parser("remove", help="Unregister a plugin module")
    pl_remove.add_argument("module", help="Module name")
    pl_remove.add_argument("--pip", metavar="PACKAGE", help="pip uninstall this package too")

    # version
    subparsers.add_parser("version", help="Show version")

    return parser


def main(argv: list[str] | None = None, context: Context | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version or args.command == "version":
        from hydra_keys import __version__

        print(f"hydra-keys {__version__}")
        return 0

    if args.command is None:
        parser.print_help()
        return 0

    settings = context.settings if context else get_config()
    setup_logging(settings.log_level, verbose=args.verbose)

    try:
        ctx = context or build_context(settings)
        if args.command == "init":
            return _cmd_init(ctx, args)
        elif args.command == "provider":
            return _cmd_provider(ctx, args)
        elif args.command == "key":
            return _cmd_key(ctx, args)
        elif args.command == "config":
            return _cmd_config(ctx, args)
        elif args.command == "storage":
            return _cmd_storage(ctx, args)
        elif args.command == "plugin":
            return _cmd_plugin(ctx, args)
    except HydraKeysError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        return 130

    parser.print_help()
    return 0


# ----------------------------------------------------------------------
# init
# ----------------------------------------------------------------------


def _cmd_init(ctx: Context, args: argparse.Namespace) -> int:
    if ctx.config_store.exists() and not args.force:
        print("Configuration already exists. Use --force to reinitialize.")
        return 1

    print("Welcome to hydra-keys setup!")
    print()
    print(f"Providers: {', '.join(ctx.registry.names())}")
    print("Checking secure storage...")
    status = asyncio.run(ctx.storage.check_storage())
    if status.available:
        print("  + Keychain storage available")
    else:
        print(f"  x Keychain not available: {status.error}")
        print("    Encrypted file storage is recommended but not yet implemented;")
        print("    secret operations will fail until a keychain is available.")

    ctx.config_store.save(default_config(backend=status.backend))
    print()
    print(f"Setup complete. Config written to {ctx.config_store.path}")
    print()
    print("Next steps:")
    print("  1. Add a provider: hydra-keys provider add <provider-name>")
    print("  2. Create a key:   hydra-keys key create <provider-name> --name <name>")
    return 0


# ----------------------------------------------------------------------
# provider
# ----------------------------------------------------------------------


def _cmd_provider(ctx: Context, args: argparse.Namespace) -> int:
    sub = getattr(args, "provider_command", None)
    broker = ctx.broker

    if sub == "list":
        if args.status:
            statuses = broker.provider_status()
            print(f"  {'Name':<15} {'Configured':<11} Key ID")
            for s in statuses:
                mark = "yes" if s.configured else "no"
                print(f"  {s.name:<15} {mark:<11} {s.service_key_id or '-'}")
        else:
            providers = ctx.registry.list()
            print(f"  {'Name':<15} {'Display Name':<20} Version")
            for p in providers:
                print(f"  {p.name:<15} {p.display_name:<20} {p.version}")
            print()
            print(f"Total: {len(providers)} providers")
        return 0

    elif sub == "add":
        provider = broker.provider(args.provider)
        ctx.config_store.load()  # fail fast before prompting

        print(f"Configuring {provider.display_name}")
        if provider.keys_url:
            print(f"Get your API key here: {provider.keys_url}")
        print()

        settings = _parse_settings(args.settings)
        for setting in provider.settings:
            if setting.key not in settings:
                value = _prompt(f"{setting.prompt}: ")
                if value:
                    settings[setting.key] = value

        service_key = args.service_key or getpass.getpass("Service/Admin API Key: ")
        record = asyncio.run(
            broker.add_provider(
                args.provider, service_key, settings, validate=not args.no_validate
            )
        )
        print("Provider configured successfully.")
        print(f"Service key stored in {ctx.config_store.load().storage.backend} storage.")
        print(f"Key ID: {record.service_key_id}")
        return 0

    elif sub == "remove":
        if not args.yes and not _confirm(f"Are you sure you want to remove {args.provider}?"):
            print("Cancelled.")
            return 0
        asyncio.run(broker.remove_provider(args.provider))
        print(f"Provider {args.provider} removed.")
        return 0

    elif sub == "validate":
        result = asyncio.run(broker.validate_provider(args.provider))
        if result.valid:
            print(f"{args.provider}: service key is valid.")
            return 0
        print(f"{args.provider}: service key rejected: {result.error}")
        return 1

    print("Usage: hydra-keys provider {list|add|remove|validate}")
    return 0


def _parse_settings(pairs: list[str]) -> dict[str, Any]:
    settings: dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise SchemaViolationError(f"Invalid setting {pair!r}, expected KEY=VALUE")
        settings[key] = value
    return settings


# ----------------------------------------------------------------------
# key
# ----------------------------------------------------------------------


def _cmd_key(ctx: Context, args: argparse.Namespace) -> int:
    sub = getattr(args, "key_command", None)
    broker = ctx.broker

    if sub == "create":
        provider_name = args.provider
        config = ctx.config_store.load()
        if not provider_name:
            provider_name = config.defaults.provider if config.defaults else None
            if not provider_name:
                print("Error: no provider given and defaults.provider is not set.", file=sys.stderr)
                return 1
        provider = broker.provider(provider_name)
        options = _create_options(args, config.defaults)

        result = asyncio.run(broker.create_key(provider_name, options))
        print("Key created successfully!")
        print()
        _print_new_key(provider.display_name, result)
        if args.output:
            _write_private(Path(args.output), json.dumps(new_key_document(result), indent=2))
            print(f"Key saved to {args.output}")
        else:
            print()
            print("Save this key now - it won't be shown again!")
        return 0

    elif sub == "list":
        provider = broker.provider(args.provider)
        keys = asyncio.run(broker.list_keys(args.provider))
        if args.json:
            print(
                json.dumps(
                    {
                        "provider": provider.name,
                        "displayName": provider.display_name,
                        "keys": [key_to_dict(k) for k in keys],
                        "total": len(keys),
                    },
                    indent=2,
                )
            )
            return 0
        _print_key_table(provider.display_name, keys)
        return 0

    elif sub == "show":
        details = asyncio.run(broker.get_key_details(args.provider, args.key_id))
        doc = key_to_dict(details)
        doc["lastUsed"] = details.last_used.isoformat() if details.last_used else None
        if details.usage is not None:
            doc["usage"] = {"requests": details.usage.requests, "cost": details.usage.cost}
        if args.json:
            print(json.dumps(doc, indent=2))
        else:
            for field_name, value in doc.items():
                print(f"  {field_name + ':':<12} {value if value is not None else '-'}")
        return 0

    elif sub == "delete":
        provider = broker.provider(args.provider)
        if not provider.supports("delete_key"):
            print(f"Error: {provider.display_name} does not support key deletion.", file=sys.stderr)
            return 1
        if not args.yes and not _confirm(f"Are you sure you want to delete key {args.key_id}?"):
            print("Cancelled.")
            return 0
        asyncio.run(broker.delete_key(args.provider, args.key_id))
        print("Key deleted successfully.")
        return 0

    elif sub == "export":
        doc = asyncio.run(broker.export_keys(args.provider))
        output = json.dumps(doc, indent=2)
        if args.output:
            _write_private(Path(args.output), output)
            print(f"Keys exported to {args.output}")
        else:
            print(output)
        return 0

    print("Usage: hydra-keys key {create|list|show|delete|export}")
    return 0


def _create_options(args: argparse.Namespace, defaults: Any) -> CreateKeyOptions:
    if args.name:
        return CreateKeyOptions(
            name=args.name,
            limit=args.limit,
            limit_reset=args.reset,
            expires_at=args.expires,
        )

    default_limit = defaults.key_limit if defaults else None
    default_reset = defaults.limit_reset if defaults else None

    name = ""
    while not name:
        name = _prompt("Key name: ")
        if not name:
            print("Key name is required.")

    limit = default_limit
    while True:
        limit_text = _prompt(_with_default("Spending/usage limit (optional)", default_limit))
        if not limit_text:
            break
        try:
            limit = float(limit_text)
            break
        except ValueError:
            print(f"Invalid limit {limit_text!r}, expected a number.")

    reset_text = _prompt(
        _with_default(f"Limit reset period ({'/'.join(LIMIT_RESETS)}/none)", default_reset)
    )
    expires_at: datetime | None = None
    while True:
        expires_text = _prompt("Expiration date (ISO 8601, optional): ")
        if not expires_text:
            break
        try:
            expires_at = _iso_datetime(expires_text)
            break
        except argparse.ArgumentTypeError as e:
            print(e)

    reset = reset_text or default_reset
    if reset == "none" or reset not in LIMIT_RESETS:
        reset = None
    return CreateKeyOptions(
        name=name,
        limit=limit,
        limit_reset=reset,
        expires_at=expires_at,
    )


def _print_new_key(display_name: str, key: KeyResult) -> None:
    limit_text = "None"
    if key.limit is not None:
        limit_text = f"${key.limit}" + (f"/{key.limit_reset}" if key.limit_reset else "")
    print(f"  Provider:   {display_name}")
    print(f"  Name:       {key.name}")
    print(f"  Key:        {key.key}")
    print(f"  Limit:      {limit_text}")
    print(f"  Expires:    {key.expires_at.date().isoformat() if key.expires_at else 'Never'}")


def _print_key_table(display_name: str, keys: list[KeyResult]) -> None:
    print(f"{display_name} Keys")
    print("=" * 40)
    if not keys:
        print("No keys found.")
        return
    print(f"  {'Name':<20} {'ID':<14} {'Created':<12} {'Expires':<12} Limit")
    for k in keys:
        limit = f"${k.limit}" if k.limit is not None else "-"
        if k.limit_reset:
            limit += f"/{k.limit_reset}"
        expires = k.expires_at.date().isoformat() if k.expires_at else "Never"
        print(
            f"  {k.name[:20]:<20} {_truncate_id(k.id):<14} "
            f"{k.created_at.date().isoformat():<12} {expires:<12} {limit}"
        )
    print()
    print(f"Total: {len(keys)} key{'s' if len(keys) != 1 else ''}")


def _truncate_id(key_id: str) -> str:
    if len(key_id) <= 12:
        return key_id
    return f"{key_id[:4]}••••{key_id[-4:]}"


# ----------------------------------------------------------------------
# config
# ----------------------------------------------------------------------


def _cmd_config(ctx: Context, args: argparse.Namespace) -> int:
    sub = getattr(args, "config_command", None)

    if sub == "path":
        print(ctx.config_store.path)
        return 0

    config = ctx.config_store.load()

    if sub == "get":
        value = get_value(config, args.key)
        if value is MISSING:
            print(f'Config key "{args.key}" not found.', file=sys.stderr)
            return 1
        print(value if isinstance(value, str) else json.dumps(value, indent=2))
        return 0

    elif sub == "set":
        parsed = parse_value(args.value, args.key)
        updated = set_value(config, args.key, parsed)
        ctx.config_store.save(updated)
        print("Config updated.")
        print(f"  Key:   {args.key}")
        print(f"  Value: {parsed if isinstance(parsed, str) else json.dumps(parsed)}")
        return 0

    elif sub == "show":
        print("hydra-keys configuration")
        print("=" * 30)
        print(f"  Version:    {config.version}")
        print(f"  Storage:    {config.storage.backend}")
        if config.providers:
            names = [
                name if record.configured else f"{name} (unconfigured)"
                for name, record in config.providers.items()
            ]
            print(f"  Providers:  {', '.join(names)}")
        else:
            print("  Providers:  None configured")
        if config.plugins:
            print(f"  Plugins:    {', '.join(config.plugins)}")
        if config.defaults:
            print()
            print("  Defaults:")
            if config.defaults.provider:
                print(f"    Provider:     {config.defaults.provider}")
            if config.defaults.key_limit is not None:
                print(f"    Key Limit:    {config.defaults.key_limit}")
            if config.defaults.limit_reset:
                print(f"    Limit Reset:  {config.defaults.limit_reset}")
        print()
        print(f"  Config Path: {ctx.config_store.path}")
        return 0

    print("Usage: hydra-keys config {get|set|show|path}")
    return 0


# ----------------------------------------------------------------------
# storage
# ----------------------------------------------------------------------


def _cmd_storage(ctx: Context, args: argparse.Namespace) -> int:
    sub = getattr(args, "storage_command", None)

    if sub == "status":
        config = ctx.config_store.load()
        backend = config.storage.backend
        print(f"  Backend:     {backend}")
        try:
            handles = asyncio.run(ctx.storage.keychain().list())
            if backend == "keychain":
                print(f"  Keychain:    {len(handles)} key(s)")
            else:
                print("  Keychain:    available (not in use)")
        except HydraKeysError as e:
            print(f"  Keychain:    UNAVAILABLE ({e})")
        print(f"  Config Path: {ctx.config_store.path}")
        print(f"  Version:     {config.version}")
        return 0

    elif sub == "migrate":
        config = ctx.config_store.load()
        current = config.storage.backend
        target = args.to or ("encrypted-file" if current == "keychain" else "keychain")
        print(f"Current backend: {current}")
        if target == current:
            print("Already using selected backend.")
            return 0
        if not args.yes and not _confirm(f"Migrate from {current} to {target}?"):
            print("Cancelled.")
            return 0
        copied = asyncio.run(ctx.storage.migrate(ctx.config_store, target))
        print(f"Migration complete: {copied} secret(s) copied. New backend: {target}")
        return 0

    print("Usage: hydra-keys storage {status|migrate}")
    return 0


# ----------------------------------------------------------------------
# plugin
# ----------------------------------------------------------------------


def _cmd_plugin(ctx: Context, args: argparse.Namespace) -> int:
    from hydra_keys.plugins import pip_install, pip_uninstall

    sub = getattr(args, "plugin_command", None)
    config = ctx.config_store.load()

    if sub == "list":
        if not config.plugins:
            print("No plugins registered.")
            print(f"Built-in providers: {', '.join(ctx.registry.names())}")
            return 0
        for module in config.plugins:
            print(f"  {module}")
        print()
        print(f"Total: {len(config.plugins)} plugin{'s' if len(config.plugins) != 1 else ''}")
        return 0

    elif sub == "add":
        if args.pip and pip_install(args.pip) != 0:
            print(f"Error: pip install {args.pip} failed.", file=sys.stderr)
            return 1
        if args.module in config.plugins:
            print(f"Plugin {args.module} is already registered.")
            return 0
        config.plugins.append(args.module)
        ctx.config_store.save(config)
        print(f"Plugin {args.module} registered. It loads on the next invocation.")
        return 0

    elif sub == "remove":
        if args.module not in config.plugins:
            print(f"Plugin {args.module} is not registered.", file=sys.stderr)
            return 1
        config.plugins.remove(args.module)
        ctx.config_store.save(config)
        if args.pip and pip_uninstall(args.pip) != 0:
            print(f"Warning: pip uninstall {args.pip} failed.", file=sys.stderr)
        print(f"Plugin {args.module} removed.")
        return 0

    print("Usage: hydra-keys plugin {list|add|remove}")
    return 0


# ----------------------------------------------------------------------
# Prompts and files
# ----------------------------------------------------------------------


def _prompt(message: str) -> str:
    return input(message).strip()


def _with_default(label: str, default: Any) -> str:
    return f"{label} [{default}]: " if default is not None else f"{label}: "


def _confirm(message: str) -> bool:
    return _prompt(f"{message} [y/N] ").lower() in ("y", "yes")


def _iso_datetime(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid date {value!r}. Use ISO 8601 (e.g. 2025-12-31)."
        ) from None


def _write_private(path: Path, content: str) -> None:
    """Write a file readable only by the owner; it may hold key material."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(content + "\n")
    os.chmod(path, 0o600)


if __name__ == "__main__":
    sys.exit(main())
