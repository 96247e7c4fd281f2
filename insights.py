"""
Investment allocation suggestions.

Text comes from an OpenAI chat model when a key is configured, otherwise
from a fixed rule-of-thumb template keyed on the risk level.
"""

import logging
from typing import Optional

from openai import OpenAI

from schemas import InvestmentInsightRequest

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTIONS = (
    "You are a friendly financial education assistant. You help beginners understand how to "
    "allocate their savings across broad investment categories. "
    "You are NOT a financial advisor. Do NOT recommend specific funds, stocks, or tickers. "
    "Only talk about general categories like equity mutual funds, index funds, debt funds, "
    "liquid funds, PPF, etc. "
    "Always include a short disclaimer that this is educational, not financial advice."
)

NO_KEY_NOTE = "(Connect an OPENAI_API_KEY to enable richer AI insights.)"
EMPTY_COMPLETION = "Unable to generate insight at the moment."

ALLOCATIONS = {
    "low": (
        "• 20% – Equity index mutual funds (long-term growth)\n"
        "• 40% – Short-term debt / liquid funds\n"
        "• 40% – Safer options like RD/PPF / high-interest savings for emergency fund"
    ),
    "medium": (
        "• 40% – Equity index mutual funds (core long-term growth)\n"
        "• 30% – Diversified equity or hybrid funds\n"
        "• 20% – Debt / liquid funds\n"
        "• 10% – Emergency fund (bank / liquid fund)"
    ),
    "high": (
        "• 60% – Equity mutual funds / index funds (long-term growth)\n"
        "• 25% – Debt / liquid funds (stability)\n"
        "• 15% – Emergency fund (very safe, easily accessible)"
    ),
}


class CompletionService:
    def __init__(self, api_key: str, model: str = "gpt-4o-mini", temperature: float = 0.8):
        self.client = OpenAI(api_key=api_key)
        self.model = model
        self.temperature = temperature

    def generate(self, prompt: str, system_instructions: str) -> str:
        completion = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_instructions},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
        )
        content = completion.choices[0].message.content if completion.choices else None
        return content or EMPTY_COMPLETION


def _top_category_line(profile: dict) -> str:
    top = profile.get("top_category")
    if not top:
        return "not enough data"
    return f"{top['name']} (₹{top['amount']:.0f})"


def build_prompt(profile: dict, req: InvestmentInsightRequest) -> str:
    horizon = req.goal_horizon_years if req.goal_horizon_years is not None else "not specified"
    return f"""
User profile for investment guidance (India, beginner):

- Risk level: {req.risk_level}
- Goal type: {req.goal_type}
- Goal horizon (years): {horizon}
- Estimated monthly savings: ₹{profile['monthly_savings_estimate']:.0f}
- Savings rate (net / income): {profile['savings_rate']:.1f}%
- Monthly income: ₹{profile['total_income']:.0f}
- Monthly expense: ₹{profile['total_expense']:.0f}
- Current month: {profile['month_label']}
- Total expenses this month: ₹{profile['month_total_expense']:.0f}
- Biggest spending category this month: {_top_category_line(profile)}

Tasks:
1. Suggest a high-level monthly allocation of their savings across 3–5 buckets, such as:
   - equity index mutual funds
   - diversified equity funds
   - debt or liquid funds
   - PPF / safer instruments
   - emergency fund
2. Explain the reasoning in simple, conversational language (this is a student/beginner).
3. Add 2–3 practical habits they can follow (SIP, emergency fund, diversification).
4. End with a short disclaimer that this is general educational information, not personal financial advice.
"""


def build_rule_based_suggestion(profile: dict, req: InvestmentInsightRequest) -> str:
    savings = profile.get("monthly_savings_estimate") or 0
    if savings:
        savings_text = f"Based on your estimated monthly savings of around ₹{savings:.0f}, "
    else:
        savings_text = "Based on your savings pattern, "

    allocation = ALLOCATIONS.get(req.risk_level, ALLOCATIONS["medium"])

    goal_line = ""
    if req.goal_type:
        goal_line = (
            f"Your primary goal is **{req.goal_type}**, so the plan focuses on "
            "balancing growth with safety.\n\n"
        )

    rate = profile.get("savings_rate") or 0
    rate_line = ""
    if rate > 0:
        rate_line = f"Your current savings rate is around **{rate:.1f}%**, which is a good starting point.\n\n"

    return (
        "Here’s a simple high-level plan for how you could think about allocating your savings:\n\n"
        + savings_text
        + "you could roughly split it like this:\n\n"
        + allocation
        + "\n\n"
        + goal_line
        + rate_line
        + "This is just a rule-of-thumb educational example. As you grow your income and savings, "
        "you can increase the percentage going into long-term growth options.\n\n"
        "**Note:** This is general educational information, not personalized financial advice. "
        "Please research carefully or talk to a qualified advisor before investing."
    )


def generate_investment_insight(
    profile: dict,
    req: InvestmentInsightRequest,
    completion: Optional[CompletionService] = None,
) -> dict:
    if completion is None:
        text = build_rule_based_suggestion(profile, req)
        return {"text": f"{text}\n\n{NO_KEY_NOTE}", "source": "rule-based"}

    logger.info("Requesting investment insight (risk=%s)", req.risk_level)
    text = completion.generate(build_prompt(profile, req), SYSTEM_INSTRUCTIONS)
    return {"text": text, "source": "ai"}
