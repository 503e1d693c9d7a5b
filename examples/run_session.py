import asyncio
import logging

from figgie_client import GameSession, PlayerInfo, create_room, robot_players
from figgie_client.config import SERVER_URL, configure_logging

ME = PlayerInfo(id="player_001", name="Alex")
NUM_ROBOTS = 3


async def main() -> None:
    bootstrap = create_room(ME, robot_players(NUM_ROBOTS), server_url=SERVER_URL)
    logging.info(f"Seated {bootstrap.me.name} in {bootstrap.room_name} ({bootstrap.room_id})")

    async with GameSession(bootstrap) as session:
        @session.on_trade
        def show_trade(trade):
            logging.info(trade.describe())

        @session.on_round_end
        def show_results(results, goal_suit):
            logging.info(f"--- Round Results (goal suit {goal_suit.symbol}) ---")
            for row in results:
                logging.info(f"{row.info.name}: cash {row.cash}, goal cards {row.goal_count}")

        @session.on_game_end
        def show_standings(standings):
            logging.info("--- Final Standings ---")
            for row in standings:
                logging.info(f"{row.info.name}: {row.cash}")

        await session.run()


if __name__ == '__main__':
    configure_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
