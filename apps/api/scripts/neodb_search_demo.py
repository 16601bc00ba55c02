"""Search the NeoDB catalog for books, or print one book's details.

Usage:
    python scripts/neodb_search_demo.py search "Invisible Cities"
    python scripts/neodb_search_demo.py book <book-uuid>
"""

import argparse
import asyncio
import json
import os
import sys

import httpx

# Add parent dir to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import settings


def _truncate(text, limit=100):
    return text if len(text) <= limit else f"{text[:limit]}..."


def _joined(value):
    return ", ".join(value) if isinstance(value, list) else str(value)


def _print_error(exc):
    print(f"❌ Request failed: {exc}")
    if isinstance(exc, httpx.HTTPStatusError):
        print(f"   Status: {exc.response.status_code}")
        try:
            print(f"   Body: {json.dumps(exc.response.json(), indent=2, ensure_ascii=False)}")
        except ValueError:
            print(f"   Body: {exc.response.text[:500]}")


async def search_books(client, base_url, keyword, limit):
    print(f"🔍 Searching NeoDB for \"{keyword}\"...")
    response = await client.get(f"{base_url}/api/catalog/search", params={"query": keyword, "limit": limit})
    response.raise_for_status()
    items = response.json().get("data") or []
    books = [item for item in items if item.get("category") == "book"]

    if not books:
        print("No matching books found.")
        return

    print(f"\n✅ Found {len(books)} books:\n")
    for index, book in enumerate(books, start=1):
        print(f"[{index}] {book.get('title')}")
        print(f"   ID: {book.get('uuid')}")
        print(f"   Link: {base_url}{book.get('url', '')}")
        if book.get("description"):
            print(f"   Summary: {_truncate(book['description'])}")
        if book.get("rating"):
            print(f"   Rating: {float(book['rating']):.1f} ({book.get('rating_count', 0)} ratings)")
        if book.get("cover_image_url"):
            print(f"   Cover: {book['cover_image_url']}")
        tags = book.get("tags") or []
        if tags:
            print(f"   Tags: {', '.join(tags[:5])}{'...' if len(tags) > 5 else ''}")
        print("")


async def show_book(client, base_url, book_id):
    print(f"📖 Fetching NeoDB book {book_id}...")
    response = await client.get(f"{base_url}/api/book/{book_id}")
    response.raise_for_status()
    book = response.json()
    if not book:
        print("Book not found.")
        return

    print(f"\nTitle: {book.get('title')}")
    for localized in book.get("localized_title") or []:
        print(f"   {localized.get('lang')}: {localized.get('text')}")
    for label, key in (("Author", "author"), ("Publisher", "publisher"), ("Published", "publish_date"), ("ISBN", "isbn")):
        if book.get(key):
            print(f"{label}: {_joined(book[key])}")
    if book.get("rating"):
        print(f"Rating: {book['rating']} ({book.get('rating_count', 0)} ratings)")
    if book.get("description"):
        print(f"\nSummary:\n{book['description']}")
    if book.get("cover_image_url"):
        print(f"\nCover: {book['cover_image_url']}")
    resources = book.get("external_resources") or []
    if resources:
        print("\nExternal resources:")
        for resource in resources:
            print(f"   {resource.get('url')}")


async def main():
    parser = argparse.ArgumentParser(description="NeoDB catalog demo")
    parser.add_argument("--base-url", default=settings.NEODB_API_BASE_URL)
    subparsers = parser.add_subparsers(dest="command", required=True)
    search = subparsers.add_parser("search", help="search books by keyword")
    search.add_argument("keyword")
    search.add_argument("--limit", type=int, default=10)
    book = subparsers.add_parser("book", help="show one book by id")
    book.add_argument("book_id")
    args = parser.parse_args()

    base_url = args.base_url.rstrip("/")
    async with httpx.AsyncClient(timeout=15.0) as client:
        try:
            if args.command == "search":
                await search_books(client, base_url, args.keyword, args.limit)
            else:
                await show_book(client, base_url, args.book_id)
        except httpx.HTTPError as exc:
            _print_error(exc)
            sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
