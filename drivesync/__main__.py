"""
drivesync: folders and reconciliation for S3-backed file trees
"""

import argparse
import asyncio
import inspect
import json
import logging
import os
import sys
from pathlib import Path

import uvicorn
from pydantic.fields import FieldInfo
from uvicorn.config import LOGGING_CONFIG

from drivesync.config import ENV_PREFIX, get_settings, s3_enabled
from drivesync.connections import drivesync_connections
from drivesync.elastic.connection import setup_elastic

SYNC_ACTIONS = ["sync", "import", "folders-to-store", "folders-from-store", "orphaned", "full", "check", "resume-renames"]


async def _check_connections():
    elastic = await setup_elastic()
    logging.info(f"Connected to elasticsearch {get_settings().elastic_host}")
    await elastic.close()
    if not s3_enabled():
        logging.warning("No S3 storage configured (drivesync_s3_host, drivesync_s3_access_key, drivesync_s3_secret_key)")


def run(args):
    logging.info(f"Starting server at port {args.port}, debug={not args.nodebug}")
    logging.info(
        "To change server config, create an .env file and/or set environment parameters,\n"
        f"{' ' * 26}see drivesync/config.py for more information.\n"
        f"{' ' * 26}You can also run `python -m drivesync config` to create the .env settings file interactively\n"
    )
    asyncio.run(_check_connections())
    log_config = "logging.yml" if Path("logging.yml").exists() else LOGGING_CONFIG
    uvicorn.run("drivesync.api:app", host="0.0.0.0", reload=not args.nodebug, port=int(args.port), log_config=log_config)


async def sync(args):
    async with drivesync_connections() as services:
        operation = services.sync_operations()[args.action]
        owners = args.owner or await services.metadata.list_owners()
        failed = False
        for owner in owners:
            result = await operation(owner)
            print(json.dumps({"owner": owner, **result.model_dump(mode="json")}, indent=2))
            failed = failed or not result.success
    if failed:
        sys.exit(1)


def base_env():
    return dict(
        drivesync_elastic_host="http://localhost:9200",
        drivesync_s3_host="http://localhost:9000",
    )


def create_env(args):
    if os.path.exists(".env"):
        print("*** File .env already exists, quitting ***")
        sys.exit(1)

    env = base_env()
    if args.bucket:
        env["drivesync_s3_bucket"] = args.bucket
    with open(".env", "w") as f:
        for key, val in env.items():
            f.write(f"{key}={val}\n")
    os.chmod(".env", 0o600)
    print("*** Created .env file ***")


def config_drivesync(args):
    settings = get_settings()
    # Not a useful entry in an actual env_file
    print(f"Reading/writing settings from {settings.env_file}")
    for fieldname, fieldinfo in type(settings).model_fields.items():
        if fieldname == "env_file":
            continue
        value = menu(fieldname, fieldinfo, getattr(settings, fieldname))
        if value is ABORTED:
            return
        if value is not UNCHANGED:
            setattr(settings, fieldname, value)

    with settings.env_file.open("w") as f:
        for fieldname, fieldinfo in type(settings).model_fields.items():
            if fieldname == "env_file":
                continue
            value = getattr(settings, fieldname)
            if doc := fieldinfo.description:
                f.write(f"# {doc}\n")
            if value is None:
                f.write(f"#{ENV_PREFIX}{fieldname}=\n\n")
            else:
                f.write(f"{ENV_PREFIX}{fieldname}={value}\n\n")
    os.chmod(settings.env_file, 0o600)
    print(f"*** Written {bold('.env')} file to {settings.env_file} ***")


def bold(x):
    return "\033[1m" + str(x) + "\033[0m"


ABORTED = object()
UNCHANGED = object()


def menu(fieldname: str, fieldinfo: FieldInfo, value):
    print(f"\n{bold(fieldname)}: {fieldinfo.description}")
    print(f"The current value for {bold(fieldname)} is {bold(value)}.")
    try:
        value = input("Enter a new value, press [enter] to leave unchanged, or press [control+c] to abort: ")
    except KeyboardInterrupt:
        return ABORTED
    if not value.strip():
        return UNCHANGED
    return value


def main():
    parser = argparse.ArgumentParser(description=__doc__, prog="python -m drivesync")

    subparsers = parser.add_subparsers(dest="action_name", title="action", help="Action to perform:", required=True)
    p = subparsers.add_parser("run", help="Run the backend API in development mode")
    p.add_argument(
        "--no-debug",
        action="store_true",
        dest="nodebug",
        help="Disable debug mode (useful for testing downstream clients)",
    )
    p.add_argument("-p", "--port", help="Port", default=5000)
    p.set_defaults(func=run)

    p = subparsers.add_parser("sync", help="Reconcile the metadata database with the object store")
    p.add_argument("owner", nargs="*", help="Owner(s) to sync. Default: all owners in the metadata database")
    p.add_argument("-a", "--action", choices=SYNC_ACTIONS, default="full", help="Sync operation to run (default: full)")
    p.set_defaults(func=sync)

    p = subparsers.add_parser("create-env", help="Create an .env file pointing to local elasticsearch and S3 servers")
    p.add_argument("-b", "--bucket", help="The bucket to store files in.")
    p.set_defaults(func=create_env)

    p = subparsers.add_parser("config", help="Configure drivesync settings in an interactive menu.")
    p.set_defaults(func=config_drivesync)

    args = parser.parse_args()

    logging.basicConfig(format="[%(levelname)-7s:%(name)-15s] %(message)s", level=logging.INFO)
    logging.getLogger("elasticsearch").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)

    if inspect.iscoroutinefunction(args.func):
        asyncio.run(args.func(args))
    else:
        args.func(args)


if __name__ == "__main__":
    main()
