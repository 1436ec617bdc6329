#!/usr/bin/env python3
"""
Command-line client for a hashdrop server.

    hashdrop submit "some text" -f notes.txt -f image.png
    hashdrop show 3f2a9c01be
    hashdrop download 3f2a9c01be...(40 chars) -o out.bin
"""
import argparse
import os
import sys
from contextlib import ExitStack
from typing import List, Optional

import requests


class HashdropClient:
    def __init__(self, base_url: str = "http://localhost:8000", timeout: float = 60):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            return response.json().get("message", "Unknown error")
        except ValueError:
            return response.text or "Unknown error"

    def submit(self, body: str, paths: List[str]) -> Optional[dict]:
        """Upload a body and files; returns {id, redirect, message} or None."""
        try:
            with ExitStack() as stack:
                files = [
                    ("files", (os.path.basename(path), stack.enter_context(open(path, "rb"))))
                    for path in paths
                ]
                response = requests.post(
                    f"{self.base_url}/submit",
                    data={"body": body},
                    files=files or None,
                    timeout=self.timeout,
                )
            if response.status_code == 200:
                data = response.json()
                print(f"✓ {data['message']}: {data['redirect']}")
                return data
            print(f"✗ Submit failed ({response.status_code}): {self._error_message(response)}")
            return None
        except (OSError, requests.RequestException) as e:
            print(f"✗ Error: {e}")
            return None

    def show(self, hash: str) -> Optional[dict]:
        """Print a stored submission and its attachment keys."""
        try:
            response = requests.get(f"{self.base_url}/{hash}", timeout=self.timeout)
            if response.status_code != 200:
                print(f"✗ Lookup failed ({response.status_code}): {self._error_message(response)}")
                return None
            data = response.json()
            print("=" * 60)
            print(f" {data['hash']}")
            print(f" {data['created_at']}")
            print("=" * 60)
            print(data["body"])
            if data["attachments"]:
                print("-" * 60)
                for attachment in data["attachments"]:
                    print(f"  {attachment['filename']}  {attachment['key']}")
            return data
        except requests.RequestException as e:
            print(f"✗ Error: {e}")
            return None

    def download(self, key: str, output: Optional[str] = None) -> Optional[str]:
        """Save an attachment; defaults to the filename the server reports."""
        try:
            response = requests.get(
                f"{self.base_url}/download", params={"hash": key}, timeout=self.timeout
            )
            if response.status_code != 200:
                print(f"✗ Download failed ({response.status_code}): {self._error_message(response)}")
                return None
            path = output or _filename_from_disposition(response.headers.get("Content-Disposition", "")) or key
            with open(path, "wb") as f:
                f.write(response.content)
            print(f"✓ Saved {len(response.content)} bytes to {path}")
            return path
        except (OSError, requests.RequestException) as e:
            print(f"✗ Error: {e}")
            return None


def _filename_from_disposition(header: str) -> Optional[str]:
    from urllib.parse import unquote

    for part in header.split(";"):
        name, _, value = part.strip().partition("=")
        if name == "filename*" and value.startswith("UTF-8''"):
            return os.path.basename(unquote(value[len("UTF-8''"):]))
    for part in header.split(";"):
        name, _, value = part.strip().partition("=")
        if name == "filename":
            return os.path.basename(value.strip('"'))
    return None


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="hashdrop", description="hashdrop command-line client")
    parser.add_argument("--url", default=os.environ.get("HASHDROP_URL", "http://localhost:8000"))
    commands = parser.add_subparsers(dest="command", required=True)

    submit = commands.add_parser("submit", help="share text and files")
    submit.add_argument("body", nargs="?", default="", help="text body ('-' reads stdin)")
    submit.add_argument("-f", "--file", action="append", default=[], dest="files")

    show = commands.add_parser("show", help="print a submission")
    show.add_argument("hash")

    download = commands.add_parser("download", help="save an attachment")
    download.add_argument("key")
    download.add_argument("-o", "--output")

    args = parser.parse_args(argv)
    client = HashdropClient(args.url)

    if args.command == "submit":
        body = sys.stdin.read() if args.body == "-" else args.body
        ok = client.submit(body, args.files) is not None
    elif args.command == "show":
        ok = client.show(args.hash) is not None
    else:
        ok = client.download(args.key, args.output) is not None

    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
