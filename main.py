#!/usr/bin/env python3
"""
ReelStudio - Main Entry Point

Usage:
    # API server (embedded worker by default)
    python main.py server

    # Standalone job worker
    python main.py worker

    # Database setup
    python main.py init-db
    python main.py seed-models
    python main.py create-admin

    # Follow a job
    python main.py monitor JOB_ID --token $SESSION_TOKEN
"""

import argparse
import asyncio
import getpass
import logging
import signal
import sys

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("reelstudio")


def start_server(host: str = "0.0.0.0", port: int = 8000):
    """Run the API with uvicorn."""
    import uvicorn

    from core.config import get_config

    for issue in get_config().validate():
        logger.warning(f"Config: {issue}")

    uvicorn.run("services.api.app:create_app", factory=True, host=host, port=port)


async def run_worker():
    """Run the job worker outside the API process until SIGINT/SIGTERM."""
    from core.config import get_config
    from core.db import apply_schema, create_pool
    from services.generation import MediaGenerator, get_provider
    from services.jobs import JobPipeline, JobQueue, JobStore, JobWorker
    from services.storage import LocalObjectStore

    config = get_config()
    db_pool = await create_pool(config)
    await apply_schema(db_pool)

    store = JobStore(db_pool)
    provider = get_provider(config=config)
    media = MediaGenerator(provider, storage=LocalObjectStore(config), config=config)
    worker = JobWorker(store, JobPipeline(store, media, config), JobQueue(), config)

    stop_event = asyncio.Event()

    def handle_signal():
        logger.info("Shutting down worker...")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal)

    await worker.start()
    logger.info(f"Worker running with provider {provider.name}. Press Ctrl+C to stop.")
    await stop_event.wait()

    await worker.stop()
    await provider.close()
    await db_pool.close()
    logger.info("Worker stopped")


async def with_pool(func):
    """Run ``func(pool)`` against a fresh, schema-applied pool."""
    from core.db import apply_schema, create_pool

    db_pool = await create_pool()
    try:
        await apply_schema(db_pool)
        return await func(db_pool)
    finally:
        await db_pool.close()


async def init_db(db_pool):
    logger.info("Schema applied")


async def seed_models(db_pool):
    from services.catalog import CatalogStore

    count = await CatalogStore(db_pool).seed_catalog()
    print(f"Seeded {count} models")


def create_admin(email: str, password: str):
    from services.accounts import AccountService, TokenService, UserStore
    from core.config import get_config

    async def run(db_pool):
        accounts = AccountService(UserStore(db_pool), TokenService(get_config().auth))
        user = await accounts.ensure_admin(email, password)
        print(f"Admin ready: {user['email']} ({user['id']})")

    return run


def set_role(email: str, role: str):
    from services.accounts import UserStore

    async def run(db_pool):
        user = await UserStore(db_pool).set_role(email, role)
        if user is None:
            print(f"No user with email {email}")
            return False
        print(f"{user['email']} is now {user['role']}")
        return True

    return run


def reset_password(email: str, password: str):
    from services.accounts import UserStore, hash_password, validate_password

    async def run(db_pool):
        problem = validate_password(password)
        if problem:
            print(problem)
            return False
        if not await UserStore(db_pool).set_password(email, hash_password(password)):
            print(f"No user with email {email}")
            return False
        print(f"Password updated for {email}")
        return True

    return run


async def monitor_job(job_id: str, server_url: str, token: str = None):
    from cli.progress_monitor import ProgressMonitor

    monitor = ProgressMonitor(job_id, server_url=server_url, token=token)
    final = await monitor.start()
    return bool(final and final.get("type") == "complete")


async def check_status(server_url: str) -> bool:
    import aiohttp

    async with aiohttp.ClientSession() as session:
        try:
            async with session.get(f"{server_url.rstrip('/')}/health") as resp:
                if resp.status != 200:
                    print(f"Server returned status {resp.status}")
                    return False
                data = await resp.json()
        except aiohttp.ClientError as e:
            print(f"Cannot connect to server: {e}")
            return False

    print(f"Server: {server_url}")
    print(f"Status: {data['status']} ({data['timestamp']})")
    return True


def main():
    parser = argparse.ArgumentParser(
        description="ReelStudio - photo to Instagram Reel generation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py server --port 8000
    python main.py create-admin --email admin@example.com
    python main.py promote-admin ana@example.com
    python main.py monitor 3f1c... --token eyJ...
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    server_parser = subparsers.add_parser("server", help="Start the API server")
    server_parser.add_argument("--host", default="0.0.0.0", help="Host to bind")
    server_parser.add_argument("--port", type=int, default=8000, help="Port to bind")

    subparsers.add_parser("worker", help="Run the job worker standalone")
    subparsers.add_parser("init-db", help="Create the database schema")
    subparsers.add_parser("seed-models", help="Upsert the AI model catalog")

    admin_parser = subparsers.add_parser("create-admin", help="Create or promote the admin user")
    admin_parser.add_argument("--email", help="Defaults to ADMIN_EMAIL")
    admin_parser.add_argument("--password", help="Defaults to ADMIN_PASSWORD")

    promote_parser = subparsers.add_parser("promote-admin", help="Give a user the ADMIN role")
    promote_parser.add_argument("email")

    revoke_parser = subparsers.add_parser("revoke-admin", help="Demote an admin to USER")
    revoke_parser.add_argument("email")

    reset_parser = subparsers.add_parser("reset-password", help="Set a user's password")
    reset_parser.add_argument("email")

    mon_parser = subparsers.add_parser("monitor", help="Follow a job's progress")
    mon_parser.add_argument("job_id", help="Job ID to monitor")
    mon_parser.add_argument("--server", default="http://localhost:8000", help="API base URL")
    mon_parser.add_argument("--token", help="Session token")

    status_parser = subparsers.add_parser("status", help="Check server health")
    status_parser.add_argument("--server", default="http://localhost:8000", help="API base URL")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "server":
        start_server(host=args.host, port=args.port)

    elif args.command == "worker":
        asyncio.run(run_worker())

    elif args.command == "init-db":
        asyncio.run(with_pool(init_db))

    elif args.command == "seed-models":
        asyncio.run(with_pool(seed_models))

    elif args.command == "create-admin":
        from core.config import get_config

        auth = get_config().auth
        email = args.email or auth.admin_email
        password = args.password or auth.admin_password
        if not email or not password:
            print("Admin email and password required (--email/--password or ADMIN_EMAIL/ADMIN_PASSWORD)")
            sys.exit(1)
        asyncio.run(with_pool(create_admin(email, password)))

    elif args.command in ("promote-admin", "revoke-admin"):
        role = "ADMIN" if args.command == "promote-admin" else "USER"
        ok = asyncio.run(with_pool(set_role(args.email, role)))
        sys.exit(0 if ok else 1)

    elif args.command == "reset-password":
        password = getpass.getpass("New password: ")
        ok = asyncio.run(with_pool(reset_password(args.email, password)))
        sys.exit(0 if ok else 1)

    elif args.command == "monitor":
        ok = asyncio.run(monitor_job(args.job_id, args.server, args.token))
        sys.exit(0 if ok else 1)

    elif args.command == "status":
        sys.exit(0 if asyncio.run(check_status(args.server)) else 1)


if __name__ == "__main__":
    main()
