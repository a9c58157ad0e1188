#!/usr/bin/env python3
"""Manual check of the session event stream against a running backend."""
import json
import uuid

import requests

BASE_URL = "http://localhost:8010"


def smoke_stream(category: str = "Sushi", city: str = "Dubai"):
    session_id = uuid.uuid4().hex
    print(f"Session: {session_id}")
    print(f"Searching {category} in {city}...\n")

    response = requests.post(
        f"{BASE_URL}/sessions/{session_id}/search/city",
        json={"city": city, "category": category},
    )
    if response.status_code != 200:
        print(f"Error: HTTP {response.status_code}")
        print(response.text)
        return

    stream = requests.get(
        f"{BASE_URL}/sessions/{session_id}/events",
        stream=True,
        headers={"Accept": "text/event-stream"},
    )
    if stream.status_code != 200:
        print(f"Error: HTTP {stream.status_code}")
        print(stream.text)
        return

    updates = 0
    final = None
    for line in stream.iter_lines():
        if not line:
            continue
        line_str = line.decode("utf-8")
        if not line_str.startswith("data: "):
            continue
        try:
            state = json.loads(line_str[6:])
        except json.JSONDecodeError as e:
            print(f"JSON decode error: {e}")
            continue
        updates += 1
        final = state
        label = state.get("progressLabel") or ""
        print(f"[{state.get('phase')}] {label}")

    print("\n=== Summary ===")
    print(f"State updates received: {updates}")
    if final is None:
        print("No events received")
        return
    if final.get("phase") == "error":
        print(f"Error: {final.get('errorMessage')}")
        return
    results = final.get("results", [])
    if final.get("notice"):
        print(final["notice"])
    for place in results:
        platforms = ", ".join(place.get("displayPlatforms", []))
        print(f"- {place.get('name')} ({place.get('rating')}, {place.get('priceLevel')}) {platforms}")


if __name__ == "__main__":
    smoke_stream()
