# debug_generation.py
import asyncio
import json
import sys

from travel_copilot.orchestrator import generate_travel_response
from travel_copilot.rendering import extract_mode_content


async def main():
    message = " ".join(sys.argv[1:]) or "Find me options from Mumbai to Goa next Friday"
    messages = [{"role": "user", "content": message}]

    # Call the generator directly (falls back locally without GEMINI_API_KEY)
    result = await generate_travel_response(messages, language="en", travel_mode="train", tradeoff=40)
    print("➡️ Generator returned:\n")
    print(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False))
    print("\n➡️ Train view:\n")
    print(extract_mode_content(result.text, "train"))


if __name__ == "__main__":
    asyncio.run(main())
