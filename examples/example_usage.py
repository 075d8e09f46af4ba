"""
Run a check server with a custom engine and query it once.
"""
import asyncio
import re

import aiohttp

from textcheck import FunctionEngine, Match, start_server, stop_server

_DOUBLE_PUNCTUATION = re.compile(r"([!?.,])\1+")


def analyze(text, language_code):
    return [
        Match.from_span(text, found.start(), found.end(), "DOUBLE_PUNCTUATION",
                        "Repeated punctuation", [found.group(1)])
        for found in _DOUBLE_PUNCTUATION.finditer(text)
    ]


async def query(port):
    async with aiohttp.ClientSession() as session:
        async with session.post(f"http://127.0.0.1:{port}/",
                                data={"language": "en", "text": "Really?? Yes.."}) as response:
            print(response.status)
            print(await response.text())


if __name__ == '__main__':
    server = start_server(FunctionEngine(analyze, ["en"]), port=0)
    try:
        asyncio.run(query(server.port))
    finally:
        stop_server(server)
