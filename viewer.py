"""
framecast - OpenCV Frame Viewer
===============================

Architecture:
    Thread 1 (daemon)  : HTTP poller  -> fetches /frame and /status
    Main thread        : cv2.imshow render loop, paced at the server FPS

Pixels arrive as [[r, g, b], ...] and are reshaped to (height, width, 3)
and converted to BGR for OpenCV.

Usage:  python viewer.py
Controls: q/ESC quit, s toggle status overlay, p print status
"""

import os
import threading
import time

import cv2
import numpy as np
import requests


# =============================================================================
# Configuration
# =============================================================================

SERVER_URL = os.getenv("FRAMECAST_SERVER_URL", "http://localhost:10000").rstrip("/")
POLL_TIMEOUT = float(os.getenv("FRAMECAST_POLL_TIMEOUT", "5"))
DISPLAY_WIDTH = 640


# =============================================================================
# Thread-safe shared state
# =============================================================================

_lock = threading.Lock()
_state = {
    "frame": None,
    "frame_index": 0,
    "frame_status": "waiting",
    "fps": 6.0,
    "server_status": None,
    "connected": False,
    "errors": 0,
}


def _get(k):
    with _lock:
        return _state.get(k)


def _set(k, v):
    with _lock:
        _state[k] = v


def payload_to_image(payload):
    """Convert a /frame payload into a BGR image, or None if malformed."""
    width = payload.get("width", 0)
    height = payload.get("height", 0)
    pixels = payload.get("pixels") or []
    if len(pixels) != width * height or width < 1:
        return None
    rgb = np.asarray(pixels, dtype=np.uint8).reshape(height, width, 3)
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)


# =============================================================================
# Thread 1 - HTTP poller
# =============================================================================

def poller_thread():
    session = requests.Session()
    last_status_poll = 0.0

    while True:
        fps = _get("fps") or 6.0
        try:
            response = session.get(f"{SERVER_URL}/frame", timeout=POLL_TIMEOUT)
            response.raise_for_status()
            payload = response.json()
            image = payload_to_image(payload)
            with _lock:
                if image is not None:
                    _state["frame"] = image
                _state["frame_index"] = payload.get("frame", 0)
                _state["frame_status"] = payload.get("status", "?")
                _state["connected"] = True

            if time.time() - last_status_poll > 1.0:
                status = session.get(f"{SERVER_URL}/status", timeout=POLL_TIMEOUT).json()
                _set("server_status", status)
                if status.get("total_frames") and status.get("duration_seconds"):
                    _set("fps", status["total_frames"] / status["duration_seconds"])
                last_status_poll = time.time()
        except (requests.RequestException, ValueError) as e:
            with _lock:
                _state["connected"] = False
                _state["errors"] += 1
            print(f"[poller] {e}. Retrying in 1s...")
            time.sleep(1.0)
            continue

        time.sleep(1.0 / max(fps, 0.5))


# =============================================================================
# Overlay
# =============================================================================

def draw_status_overlay(frame, status, frame_index, frame_status):
    lines = [f"frame {frame_index} ({frame_status})"]
    if status:
        lines.append(f"state {status.get('state')}  streak {status.get('error_streak')}")
        lines.append(f"last {status.get('last_outcome')}  {status.get('last_decode_ms')}ms")

    y = 20
    for line in lines:
        cv2.putText(frame, line, (8, y), cv2.FONT_HERSHEY_SIMPLEX, 0.5,
                    (0, 0, 0), 3, cv2.LINE_AA)
        cv2.putText(frame, line, (8, y), cv2.FONT_HERSHEY_SIMPLEX, 0.5,
                    (255, 255, 255), 1, cv2.LINE_AA)
        y += 20
    return frame


# =============================================================================
# Main render loop
# =============================================================================

def main():
    print("=" * 60)
    print("framecast viewer")
    print("=" * 60)
    print(f"  Server:  {SERVER_URL}")
    print()
    print("  Controls:")
    print("    q/ESC  - quit")
    print("    s      - toggle status overlay")
    print("    p      - print server status")
    print("=" * 60)

    threading.Thread(target=poller_thread, daemon=True).start()

    show_status = True
    window_name = "framecast"
    cv2.namedWindow(window_name, cv2.WINDOW_NORMAL)
    cv2.resizeWindow(window_name, DISPLAY_WIDTH, DISPLAY_WIDTH * 3 // 4)

    while True:
        fps = _get("fps") or 6.0
        frame = _get("frame")

        if frame is not None:
            h, w = frame.shape[:2]
            scale = DISPLAY_WIDTH / w
            display = cv2.resize(frame, (DISPLAY_WIDTH, int(h * scale)),
                                 interpolation=cv2.INTER_NEAREST)
            if show_status:
                display = draw_status_overlay(
                    display, _get("server_status"), _get("frame_index"), _get("frame_status"))
        else:
            display = np.full((480, 640, 3), 30, dtype=np.uint8)
            cv2.putText(display, f"Connecting to {SERVER_URL}...", (40, 240),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.7, (100, 100, 100), 2)

        cv2.imshow(window_name, display)

        key = cv2.waitKey(max(1, int(1000 / fps))) & 0xFF
        if key == ord('q') or key == 27:
            break
        elif key == ord('s'):
            show_status = not show_status
            print(f"[toggle] status overlay: {'ON' if show_status else 'OFF'}")
        elif key == ord('p'):
            print(f"[status] {_get('server_status')}")

    cv2.destroyAllWindows()
    print("\n[viewer] Shutdown.")


if __name__ == "__main__":
    main()
