"""
Simple simulation script: queue random players against a running server.
"""

import requests
import random
import time
import sys


def main():
    BASE_URL = "http://localhost:8000/api/v1"
    NUM_PLAYERS = 6
    NUM_ROUNDS = 20
    GAME_MODE = "standard"

    print("=== Ranked Queue Simulation ===\n")

    # Create players
    print(f"\nCreating {NUM_PLAYERS} players...")
    players = []
    for i in range(NUM_PLAYERS):
        response = requests.post(
            f"{BASE_URL}/players",
            json={"username": f"player_{i}_{int(time.time())}"}
        )
        if response.status_code == 200:
            player_id = response.json()["id"]
            players.append(player_id)
            print(f"  Created player {i + 1} (ID: {player_id})")

    if len(players) < 2:
        print("X Need at least 2 players")
        sys.exit(1)

    print(f"\nPlaying {NUM_ROUNDS} rounds...")
    for round_num in range(NUM_ROUNDS):
        p1, p2 = random.sample(players, 2)

        for player_id in (p1, p2):
            response = requests.post(
                f"{BASE_URL}/queue/join",
                json={"player_id": player_id, "game_mode": GAME_MODE}
            )
            if response.status_code != 200:
                print(f"Failed to join queue: {response.text}")

        entry = response.json()
        match_id = entry.get("match_id")
        if not match_id:
            print(f"  Round {round_num + 1}: no pairing yet, leaving queue")
            for player_id in (p1, p2):
                requests.post(f"{BASE_URL}/queue/leave", json={"player_id": player_id})
            continue

        match = requests.get(f"{BASE_URL}/queue/matches/{match_id}").json()
        outcome = random.random()
        if outcome < 0.1:
            winner_id = None
        else:
            winner_id = match["player1_id"] if outcome < 0.55 else match["player2_id"]

        response = requests.post(
            f"{BASE_URL}/queue/matches/{match_id}/complete",
            json={"winner_id": winner_id}
        )
        if response.status_code != 200:
            print(f"Failed to complete match {match_id}: {response.text}")
            continue

        ratings = response.json()["ratings"]
        result = f"Player {winner_id} won" if winner_id else "Draw"
        print(
            f"  Game #{match['game_number']}: {result} "
            f"({ratings['player1_change']:+.0f} / {ratings['player2_change']:+.0f})"
        )

    # Get API leaderboard
    print("\nLeaderboard (Top 3):")
    response = requests.get(f"{BASE_URL}/leaderboard/{GAME_MODE}")
    if response.status_code == 200:
        leaderboard = response.json()
        if leaderboard["is_stale"]:
            print("  (stale data)")
        for entry in leaderboard["data"][:3]:
            print(f"  {entry['rank']}. {entry['name']}: {entry['mmr']} ({entry['wins']}W/{entry['losses']}L)")

    print("\n Simulation complete!")


if __name__ == "__main__":
    main()
