import argparse
import getpass
import json
import os
import sys
from urllib.parse import quote, urljoin

import requests

def base_url() -> str:
    return os.getenv('TURNSTILE_URL', 'http://localhost:8000').rstrip('/') + '/'

def _headers(admin_key: str | None = None) -> dict:
    out = {'Accept': 'application/json'}
    if admin_key:
        out['X-Admin-Key'] = admin_key
    return out

def _print(r: requests.Response) -> int:
    print(f'HTTP {r.status_code}')
    try:
        print(json.dumps(r.json(), indent=2))
    except ValueError:
        print(r.text)
    if r.status_code == 409:
        print('Conflict: the blacklist changed concurrently. Re-run the command.', file=sys.stderr)
    return 0 if r.ok else 1

def confirm(prompt: str, assume_yes: bool = False) -> None:
    if assume_yes:
        return
    ans = input(f"{prompt} [y/N]: ").strip().lower()
    if ans not in ('y', 'yes'):
        raise SystemExit('Aborted.')

def do_list(sess: requests.Session, args) -> int:
    url = urljoin(base_url(), 'admin/blacklist')
    return _print(sess.get(url, headers=_headers(args.admin_key), timeout=args.timeout))

def do_add(sess: requests.Session, args) -> int:
    confirm(f'Blacklist {args.ip}?', args.yes)
    url = urljoin(base_url(), 'admin/blacklist')
    return _print(sess.post(url, json={'ip': args.ip}, headers=_headers(args.admin_key), timeout=args.timeout))

def do_remove(sess: requests.Session, args) -> int:
    confirm(f'Remove {args.ip} from the blacklist?', args.yes)
    url = urljoin(base_url(), f'admin/blacklist/{quote(args.ip, safe="")}')
    return _print(sess.delete(url, headers=_headers(args.admin_key), timeout=args.timeout))

def do_my_ip(sess: requests.Session, args) -> int:
    url = urljoin(base_url(), 'api/my-ip')
    return _print(sess.get(url, headers=_headers(), timeout=args.timeout))

def do_status(sess: requests.Session, args) -> int:
    url = urljoin(base_url(), 'api/endpoint-status')
    return _print(sess.get(url, headers=_headers(), timeout=args.timeout))

def main():
    p = argparse.ArgumentParser(description='Turnstile admin CLI')
    p.add_argument('--base-url', default=os.getenv('TURNSTILE_URL'), help='Override base URL (default env TURNSTILE_URL or http://localhost:8000)')
    p.add_argument('--admin-key', default=os.getenv('ADMIN_API_KEY'))
    p.add_argument('--timeout', type=float, default=20.0, help='Request timeout in seconds')
    p.add_argument('-y', '--yes', action='store_true', help='Assume yes for safety prompts')
    sub = p.add_subparsers(dest='cmd', required=True)

    sub.add_parser('list', help='Show the persisted blacklist')

    add = sub.add_parser('add', help='Add an IP to the blacklist')
    add.add_argument('ip')

    rm = sub.add_parser('remove', help='Remove an IP from the blacklist')
    rm.add_argument('ip')

    sub.add_parser('my-ip', help='Show the IP the gateway sees for this machine')
    sub.add_parser('status', help='Show endpoint status')

    args = p.parse_args()
    if args.base_url:
        os.environ['TURNSTILE_URL'] = args.base_url

    if args.cmd in ('list', 'add', 'remove') and not args.admin_key:
        args.admin_key = getpass.getpass('Admin key: ')

    sess = requests.Session()
    if args.cmd == 'list':
        return do_list(sess, args)
    elif args.cmd == 'add':
        return do_add(sess, args)
    elif args.cmd == 'remove':
        return do_remove(sess, args)
    elif args.cmd == 'my-ip':
        return do_my_ip(sess, args)
    elif args.cmd == 'status':
        return do_status(sess, args)
    else:
        p.print_help()
        return 2

if __name__ == '__main__':
    sys.exit(main())
