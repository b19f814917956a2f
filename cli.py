"""Small CLI for interacting with the sealed tally server.

Usage examples:
    python cli.py create --poll 420 --question "SOL to 500?" --authority alice
    python cli.py vote --poll 420 --secret my-wallet-secret --yes
    python cli.py reveal --poll 420 --authority alice
    python cli.py events --poll 420
"""

import argparse

import requests

from sealed_tally import config, voter


BASE = config.SERVER_URL


def create(poll_id: str, question: str, authority: str):
    r = requests.post(
        f"{BASE}/polls",
        json={"poll_id": poll_id, "question": question, "authority": authority},
        timeout=config.HTTP_TIMEOUT,
    )
    print(r.json())


def vote(poll_id: str, secret: str, choice: bool):
    r = requests.get(f"{BASE}/polls/{poll_id}", timeout=config.HTTP_TIMEOUT)
    r.raise_for_status()
    pool = bytes.fromhex(r.json()["pool"])
    # the ballot is sealed locally; only ciphertext leaves this process
    keys = voter.derive_voter_keypair(secret.encode("utf-8"))
    ballot = voter.new_ballot(choice, poll_id, pool, keys)
    r = requests.post(
        f"{BASE}/polls/{poll_id}/votes",
        json={"ballot": ballot.to_dict()},
        timeout=config.HTTP_TIMEOUT,
    )
    print(r.json())


def reveal(poll_id: str, authority: str):
    r = requests.post(
        f"{BASE}/polls/{poll_id}/reveal",
        json={"authority": authority},
        timeout=config.HTTP_TIMEOUT,
    )
    print(r.json())


def events(poll_id: str):
    r = requests.get(f"{BASE}/polls/{poll_id}/events", timeout=config.HTTP_TIMEOUT)
    print(r.json())


def main():
    p = argparse.ArgumentParser()
    sub = p.add_subparsers(dest="cmd")
    c = sub.add_parser("create")
    c.add_argument("--poll", required=True)
    c.add_argument("--question", default="")
    c.add_argument("--authority", required=True)
    v = sub.add_parser("vote")
    v.add_argument("--poll", required=True)
    v.add_argument("--secret", required=True)
    choice = v.add_mutually_exclusive_group(required=True)
    choice.add_argument("--yes", dest="choice", action="store_true")
    choice.add_argument("--no", dest="choice", action="store_false")
    r = sub.add_parser("reveal")
    r.add_argument("--poll", required=True)
    r.add_argument("--authority", required=True)
    e = sub.add_parser("events")
    e.add_argument("--poll", required=True)
    args = p.parse_args()
    if args.cmd == "create":
        create(args.poll, args.question, args.authority)
    elif args.cmd == "vote":
        vote(args.poll, args.secret, args.choice)
    elif args.cmd == "reveal":
        reveal(args.poll, args.authority)
    elif args.cmd == "events":
        events(args.poll)
    else:
        p.print_help()


if __name__ == "__main__":
    main()
