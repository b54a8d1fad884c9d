
import argparse
import json
import os
import random
import socket
import time

import httpx
from dotenv import load_dotenv

# -----------------------------
# Load environment (optional)
# -----------------------------
load_dotenv()

# -----------------------------
# CONFIG: fill these or use .env
# -----------------------------
BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:5000/api")
UDP_HOST = os.getenv("UDP_TARGET_HOST", "localhost")
UDP_PORT = int(os.getenv("UDP_PORT", "41234"))
DEVICE_ID = os.getenv("DEVICE_ID", "345678909876")
NODE_IDS = os.getenv("NODE_IDS", "NODE011,NODE012,NODE013,NODE014,NODE015").split(",")
SEND_INTERVAL_SECONDS = float(os.getenv("SEND_INTERVAL_SECONDS", "3"))


# -----------------------------
# Helpers
# -----------------------------
def register(client: httpx.Client) -> bool:
    """
    Register the gateway and its nodes. A 400 means it is already registered,
    which is fine for repeated simulator runs.
    """
    r = client.post("/devices/register", json={
        "deviceId": DEVICE_ID,
        "deviceName": "IoT Simulator Gateway",
        "description": "Simulated Wi-SUN gateway device",
        "ipAddress": "192.168.1.100",
        "location": "Test Environment",
    })
    if r.status_code not in (201, 400):
        print(f"[error] device registration failed: {r.status_code} {r.text}")
        return False

    for node_id in NODE_IDS:
        r = client.post("/nodes/register", json={
            "nodeId": node_id,
            "nodeName": f"Meter {node_id}",
            "deviceId": DEVICE_ID,
            "description": f"Simulated meter node {node_id}",
            "location": f"Location {node_id}",
        })
        if r.status_code not in (201, 400):
            print(f"[error] node {node_id} registration failed: {r.status_code} {r.text}")
            return False
    print(f"[info] registered {DEVICE_ID} with nodes {', '.join(NODE_IDS)}")
    return True


def build_simple_payload(node_id: str) -> dict:
    voltage = round(230 + random.uniform(-10, 10), 2)
    current = round(random.uniform(1, 15), 2)
    power_factor = round(random.uniform(0.8, 1.0), 3)
    return {
        "deviceId": DEVICE_ID,
        "nodeId": node_id,
        "current": current,
        "voltage": voltage,
        "powerFactor": power_factor,
        "apparentPower": round(voltage * current * power_factor / 1000, 2),
    }


def build_wisun_payload(node_id: str) -> dict:
    """
    Wi-SUN style packet: legacy identity keys, string meter values and the
    mesh diagnostics the border router reports.
    """
    return {
        "device": DEVICE_ID,
        "chip": "xG28",
        "parent": node_id,
        "running": "0-00:03:03",
        "connected": "0-00:02:09",
        "disconnected": "no",
        "connections": "1",
        "availability": "100.00",
        "connected_total": "0-00:02:09",
        "disconnected_total": "0-00:00:00",
        "Wisun_Data": "WiSUN-Board-20",
        "neighbor_info": {"rsl_in": random.randint(-60, -30), "rsl_out": random.randint(-60, -30), "is_lfn": 5},
        "current": f"{random.uniform(1, 11):.2f}",
        "voltage": f"{random.uniform(200, 300):.2f}",
        "powerFactor": f"{random.uniform(0.5, 1.0):.3f}",
        "apparentPower": f"{random.uniform(1, 6):.2f}",
    }


def send_udp(sock: socket.socket, payload: dict) -> None:
    # fire-and-forget; the backend never answers
    sock.sendto(json.dumps(payload, separators=(",", ":")).encode("utf-8"), (UDP_HOST, UDP_PORT))
    print(f"[udp] {payload['parent']} -> {UDP_HOST}:{UDP_PORT}")


def send_http(client: httpx.Client, payload: dict) -> bool:
    try:
        r = client.post("/meter/data", json=payload)
    except httpx.HTTPError as ex:
        print(f"[warn] send failed: {ex}")
        return False
    if r.status_code != 201:
        print(f"[warn] {payload['nodeId']} rejected: {r.status_code} {r.text}")
        return False
    print(
        f"[http] {payload['nodeId']}: V={payload['voltage']}V I={payload['current']}A "
        f"PF={payload['powerFactor']} AP={payload['apparentPower']}"
    )
    return True


# -----------------------------
# Main
# -----------------------------
def main():
    parser = argparse.ArgumentParser(description="Wi-SUN e-meter gateway simulator")
    parser.add_argument("--mode", choices=["udp", "http"], default="udp")
    parser.add_argument("--skip-register", action="store_true")
    args = parser.parse_args()

    client = httpx.Client(base_url=BACKEND_URL, timeout=5.0)
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

    try:
        if not args.skip_register and not register(client):
            raise RuntimeError("registration failed; is the backend running?")

        print(f"[info] sending every {SEND_INTERVAL_SECONDS}s over {args.mode}")
        while True:
            for node_id in NODE_IDS:
                if args.mode == "udp":
                    send_udp(sock, build_wisun_payload(node_id))
                else:
                    send_http(client, build_simple_payload(node_id))
            time.sleep(SEND_INTERVAL_SECONDS)
    except KeyboardInterrupt:
        print("Exiting...")
    finally:
        sock.close()
        client.close()


if __name__ == "__main__":
    main()
