"""
Command line tools for CampusVoice.

    python -m campusvoice.cli create-admin --email editor@example.com
    python -m campusvoice.cli init-db
"""

import argparse
import getpass
import sys

from campusvoice import config
from campusvoice.db.database import init_db, session_scope
from campusvoice.errors import CampusVoiceError
from campusvoice.services.auth import create_admin_user


def cmd_init_db(args) -> int:
    init_db()
    print(f"Database ready at {config.DB_PATH}")
    return 0


def cmd_create_admin(args) -> int:
    init_db()
    password = args.password or getpass.getpass("Password: ")
    try:
        with session_scope() as db:
            user = create_admin_user(db, args.email, password)
            print(f"Created admin {user.email}")
    except CampusVoiceError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="campusvoice")
    commands = parser.add_subparsers(dest="command", required=True)

    init = commands.add_parser("init-db", help="create database tables")
    init.set_defaults(func=cmd_init_db)

    create = commands.add_parser("create-admin", help="create an admin user")
    create.add_argument("--email", required=True)
    create.add_argument("--password", help="prompted for when omitted")
    create.set_defaults(func=cmd_create_admin)
    return parser


def main(argv=None) -> int:
    config.configure_logging()
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
