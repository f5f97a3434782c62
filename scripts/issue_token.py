"""
Issue an API token

Signs a bearer token with the configured JWT secret, for local use against
the Custom Dimensions API.

    python scripts/issue_token.py --user alice --admin 1 2 --view 3 --expires-in 3600
"""

import argparse

from custom_dimensions.serving.auth import Principal, issue_token


def main():
    parser = argparse.ArgumentParser(description="Issue a Custom Dimensions API token")
    parser.add_argument("--user", required=True, help="Subject of the token")
    parser.add_argument("--superuser", action="store_true", help="Grant access to every site")
    parser.add_argument("--admin", type=int, nargs="*", default=[], help="Site ids with admin access")
    parser.add_argument("--view", type=int, nargs="*", default=[], help="Site ids with view access")
    parser.add_argument("--expires-in", type=int, default=None, help="Lifetime in seconds")
    args = parser.parse_args()
    
    principal = Principal(
        user_id=args.user,
        superuser=args.superuser,
        view_sites=frozenset(args.view),
        admin_sites=frozenset(args.admin),
    )
    print(issue_token(principal, expires_in=args.expires_in))


if __name__ == "__main__":
    main()
