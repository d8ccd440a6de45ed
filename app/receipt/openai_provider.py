import base64

from agents import Agent, Runner

from app.receipt.base import ParsedReceipt

INSTRUCTIONS = """\
You are a receipt parser for a group trip expense tracker. Given a receipt image, extract the merchant, the purchased items, the extras and the total.

Rules:
- merchant: the shop or restaurant name, or null if not visible
- currency: the ISO 4217 code printed on the receipt, or null if none is shown (the trip usually pays in the hinted currency)
- items: only purchased items/products/services; cost is the line total (price * quantity) as a decimal number with full precision
- quantity is optional (null if not visible)
- extras: the sum of ALL non-item charges (tax, tips, service charges, fees). null if none found
- total: the grand total printed on the receipt, or null if not visible
- Do NOT include tax/tips/fees/service charges as items
- If the receipt is not in English, translate descriptions to English"""

agent = Agent(
    name="Receipt Parser",
    instructions=INSTRUCTIONS,
    model="gpt-4o",
    output_type=ParsedReceipt,
)


class OpenAIReceiptExtractor:
    """Receipt parsing using OpenAI Agents SDK with GPT-4o vision."""

    async def parse_document(self, image_bytes: bytes, content_type: str, currency_hint: str) -> ParsedReceipt:
        b64_image = base64.b64encode(image_bytes).decode("utf-8")
        media_type = content_type or "image/jpeg"

        result = await Runner.run(
            agent,
            input=[
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": f"Parse this receipt. Currency hint: {currency_hint}."},
                        {"type": "input_image", "image_url": f"data:{media_type};base64,{b64_image}"},
                    ],
                }
            ],
        )

        return result.final_output
