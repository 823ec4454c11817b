#!/usr/bin/env python3
"""
NetShield - Sample Packet Sender
Sends synthetic KDD feature vectors of each attack family for testing.
"""

import argparse
import random
import time

import requests

ATTACK_FAMILIES = ["normal", "dos", "probe", "r2l", "u2r"]


def base_features() -> dict:
    """A quiet HTTP connection with every counter at zero."""
    return {
        "duration": 0.0, "protocol_type": "tcp", "service": "http", "flag": "SF",
        "src_bytes": random.randint(100, 2000), "dst_bytes": random.randint(100, 5000),
        "land": 0, "wrong_fragment": 0, "urgent": 0,
        "hot": 0, "num_failed_logins": 0, "logged_in": 1, "num_compromised": 0,
        "root_shell": 0, "su_attempted": 0, "num_root": 0, "num_file_creations": 0,
        "num_shells": 0, "num_access_files": 0, "num_outbound_cmds": 0,
        "is_host_login": 0, "is_guest_login": 0,
        "count": random.randint(1, 20), "srv_count": random.randint(1, 20),
        "serror_rate": 0.0, "srv_serror_rate": 0.0, "rerror_rate": 0.0, "srv_rerror_rate": 0.0,
        "same_srv_rate": 1.0, "diff_srv_rate": 0.0, "srv_diff_host_rate": 0.0,
        "dst_host_count": random.randint(1, 50), "dst_host_srv_count": random.randint(1, 50),
        "dst_host_same_srv_rate": 1.0, "dst_host_diff_srv_rate": 0.0,
        "dst_host_same_src_port_rate": 0.0, "dst_host_srv_diff_host_rate": 0.0,
        "dst_host_serror_rate": 0.0, "dst_host_srv_serror_rate": 0.0,
        "dst_host_rerror_rate": 0.0, "dst_host_srv_rerror_rate": 0.0,
    }


def make_features(family: str) -> dict:
    """Feature vector shaped like the given attack family."""
    features = base_features()

    if family == "dos":
        features.update({
            "service": "private", "flag": "S0", "src_bytes": 0, "dst_bytes": 0,
            "count": random.randint(501, 1000), "srv_count": random.randint(10, 50),
            "serror_rate": 1.0, "srv_serror_rate": 1.0, "logged_in": 0,
        })
    elif family == "probe":
        features.update({
            "service": random.choice(["private", "other", "eco_i"]), "flag": "REJ",
            "dst_host_count": 255, "dst_host_srv_count": random.randint(1, 5),
            "same_srv_rate": round(random.uniform(0.0, 0.09), 2),
            "diff_srv_rate": 0.9, "rerror_rate": 1.0, "logged_in": 0,
        })
    elif family == "r2l":
        features.update({
            "service": random.choice(["ftp", "telnet", "ftp_data"]),
            "num_failed_logins": random.randint(4, 8), "logged_in": 0,
        })
    elif family == "u2r":
        features.update({
            "service": "telnet", "duration": float(random.randint(10, 300)),
            "root_shell": 1, "num_root": random.randint(1, 5), "hot": random.randint(1, 5),
        })

    return features


def send_packet(url: str, family: str):
    """POST one feature vector to the classification endpoint."""
    payload = {
        "features": make_features(family),
        "source_ip": f"192.168.1.{random.randint(100, 200)}",
        "dest_ip": f"10.0.0.{random.randint(1, 50)}",
    }

    resp = requests.post(
        f"{url}/api/v1/classify",
        headers={"Content-Type": "application/json"},
        json=payload,
        timeout=10
    )
    return resp.status_code, resp.json() if resp.ok else resp.text


def main():
    parser = argparse.ArgumentParser(description="Send sample feature vectors to NetShield")
    parser.add_argument("--url", default="http://localhost:8000", help="Backend URL")
    parser.add_argument("--count", type=int, default=10, help="Number of rounds to send")
    parser.add_argument("--interval", type=float, default=0.5, help="Interval between rounds (seconds)")
    parser.add_argument("--type", choices=ATTACK_FAMILIES + ["all"], default="all", help="Attack family")
    parser.add_argument("--demo", action="store_true", help="Trigger server-side demo traffic instead")
    args = parser.parse_args()

    families = ATTACK_FAMILIES if args.type == "all" else [args.type]

    print(f"Sending {args.count} round(s) to {args.url}")
    print(f"Families: {', '.join(families)}")
    print("-" * 50)

    for i in range(args.count):
        try:
            if args.demo:
                resp = requests.get(
                    f"{args.url}/api/v1/classify",
                    params={"action": "generate_demo_traffic"},
                    timeout=10
                )
                print(f"[{i+1}/{args.count}] DEMO:  Status={resp.status_code}")
            else:
                for family in families:
                    status, body = send_packet(args.url, family)
                    if isinstance(body, dict):
                        prediction = body["prediction"]
                        print(
                            f"[{i+1}/{args.count}] {family.upper():6} Status={status} "
                            f"-> {prediction['attack_type']}/{prediction['severity']} "
                            f"({prediction['confidence']:.2f}) stored={body['alert_stored']}"
                        )
                    else:
                        print(f"[{i+1}/{args.count}] {family.upper():6} Status={status} {body}")

            if args.interval > 0 and i < args.count - 1:
                time.sleep(args.interval)

        except requests.exceptions.RequestException as e:
            print(f"[{i+1}/{args.count}] ERROR: {e}")

    print("-" * 50)
    print("Done!")


if __name__ == "__main__":
    main()
