"""Reference runner that demonstrates a poll end to end in one process.

Run this script from the repository root to run a small simulated poll.
"""

import argparse
import logging
import secrets

from sealed_tally import PollSequencer, LocalCluster, config, voter


def _print_heading(msg: str):
    print()
    print(msg)


def _print_kv(key: str, value: str):
    print(f"  {key}: {value}")


def main():
    p = argparse.ArgumentParser()
    p.add_argument("--poll", default="420")
    p.add_argument("--question", default="Poll 420: $SOL to 500?")
    p.add_argument("--yes", type=int, default=2, help="number of yes voters")
    p.add_argument("--no", type=int, default=1, help="number of no voters")
    args = p.parse_args()

    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)

    # Step 1: the cluster holds the pool key; the sequencer owns poll state
    _print_heading("[Step 1] Setup: start the computation cluster")
    cluster = LocalCluster()
    sequencer = PollSequencer(cluster)
    _print_kv("pool key", cluster.fingerprint)

    _print_heading("[Step 2] Create the poll and seal a zero tally")
    record = sequencer.create_poll(args.poll, args.question, authority="authority")
    _print_kv("poll", record.poll_id)
    _print_kv("question", record.question)

    # Step 3: every voter seals locally under their own shared context
    _print_heading("[Step 3] Cast sealed ballots")
    choices = [True] * args.yes + [False] * args.no
    for choice in choices:
        keys = voter.derive_voter_keypair(secrets.token_bytes(32))
        ballot = voter.new_ballot(choice, record.poll_id, cluster.public_key, keys)
        sequence = sequencer.cast_vote(record.poll_id, ballot)
        _print_kv(f"voter {keys.public_key.hex()[:8]}..", f"sequence {sequence}")

    _print_heading("[Step 4] Reveal the majority")
    outcome = sequencer.reveal(record.poll_id, "authority")
    _print_kv("yes wins", str(outcome))

    _print_heading("Event log:")
    for event in sequencer.events(record.poll_id):
        _print_kv(event["event"], event["timestamp"])


if __name__ == "__main__":
    main()
