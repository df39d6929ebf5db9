"""
Santa persona reply generation.

Two interchangeable strategies share one ``generate(message, context)``
interface: offline keyword rules, and the OpenAI chat completions API driven by
a fixed persona prompt. Both fail closed to a small set of in-character
fallback replies, so a chat turn always ends with Santa saying something.
"""

import json
import random
import re
import zlib
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Protocol

import openai
from loguru import logger

from northpole.config import Settings
from northpole.models.schemas import Tone
from northpole.services.sentiment_service import detect_mood

MAX_SUGGESTIONS = 3


@dataclass
class SantaReply:
    message: str
    tone: Tone = Tone.JOLLY
    suggestions: List[str] = field(default_factory=list)


@dataclass
class ChatContext:
    # {"role": "user" | "assistant", "content": str}, oldest first
    prior_messages: List[Dict[str, str]] = field(default_factory=list)
    wishlist_items: List[str] = field(default_factory=list)


class SantaGenerator(Protocol):
    async def generate(self, message: str, context: ChatContext) -> SantaReply:
        ...


# ── Key validation ────────────────────────────────────────
def is_real_api_key(key: str) -> bool:
    """Return True only if the key looks like a genuine OpenAI API key."""
    if not key:
        return False
    # Placeholder keys contain 'your' or are too short / malformed
    if "your" in key.lower():
        return False
    if not key.startswith("sk-"):
        return False
    if len(key) < 30:
        return False
    return True


# ─────────────────────────────────────────────────────────
#  FALLBACK + SAFETY
# ─────────────────────────────────────────────────────────

FALLBACK_REPLIES = [
    "Ho ho ho! Santa's helpers are having trouble with the magic snow globe. Could you try asking again?",
    "Ho ho ho! The reindeer just bumped into my mailbag and your letter flew away. Could you tell me once more?",
    "Oh my, the North Pole wind is howling tonight and Santa missed that. Will you say it again?",
    "Ho ho ho! Mrs. Claus just called me in for cookies. What were you telling me, my friend?",
]

REDIRECT_REPLIES = [
    "Ho ho ho! Let's talk about something merrier. What is your favorite thing about the holidays?",
    "Oh ho! Santa likes to keep things cozy and kind. Have you helped anyone this holiday season?",
    "Ho ho ho! How about we chat about the reindeer instead? Rudolph has been practicing his flying!",
]

REDIRECT_SUGGESTIONS = [
    "Tell Santa your favorite holiday tradition",
    "Ask about the reindeer",
    "Add something to your wishlist",
]

NO_PROMISE_REPLY = (
    "Ho ho ho! I've written your wishes down in my big book, and the elves and I "
    "will see what holiday magic we can make. Keep being kind!"
)

UNSAFE_WORDS = [
    "kill", "killing", "gun", "guns", "knife", "weapon", "blood", "die", "dead",
    "drugs", "beer", "alcohol", "cigarette", "sex", "sexy", "naked",
    "stupid", "idiot", "hate", "shut up", "damn", "hell", "crap", "shit", "fuck",
    "bitch", "ass", "address", "phone number", "password",
]
_UNSAFE_PATTERN = re.compile(
    r"\b(" + "|".join(re.escape(w) for w in UNSAFE_WORDS) + r")\b", re.IGNORECASE,
)

_PROMISE_PATTERN = re.compile(
    r"\b("
    r"i\s*(?:'ll|will)\s+(?:bring|give|get|deliver|make)\s+you"
    r"|you\s*(?:'ll|will)\s+(?:get|receive|find|have)"
    r"|i\s+promise"
    r"|(?:it|they)\s*(?:'ll|will)\s+be\s+under\s+(?:your|the)\s+tree"
    r")\b",
    re.IGNORECASE,
)


def _pick(options: List[str], seed: str) -> str:
    """Deterministic choice keyed on the message text."""
    return options[zlib.crc32(seed.encode("utf-8")) % len(options)]


def fallback_reply(message: str = "") -> SantaReply:
    return SantaReply(message=_pick(FALLBACK_REPLIES, message), tone=Tone.JOLLY, suggestions=[])


def redirect_reply(message: str = "") -> SantaReply:
    return SantaReply(
        message=_pick(REDIRECT_REPLIES, message),
        tone=Tone.CARING,
        suggestions=list(REDIRECT_SUGGESTIONS),
    )


def is_unsafe(text: str) -> bool:
    return bool(text) and _UNSAFE_PATTERN.search(text) is not None


def clean_suggestions(raw) -> List[str]:
    if not isinstance(raw, list):
        return []
    cleaned = [s.strip() for s in raw if isinstance(s, str) and s.strip()]
    return [s for s in cleaned if not is_unsafe(s)][:MAX_SUGGESTIONS]


def sanitize_reply(reply: SantaReply, message: str = "") -> SantaReply:
    """Keep generated text in character: no unsafe words, no gift promises."""
    if not reply.message or not reply.message.strip():
        return fallback_reply(message)
    if is_unsafe(reply.message):
        logger.warning("Generated reply contained unsafe wording — redirecting")
        return redirect_reply(message)
    if _PROMISE_PATTERN.search(reply.message):
        logger.warning("Generated reply promised a gift — replacing")
        return SantaReply(
            message=NO_PROMISE_REPLY,
            tone=Tone.coerce(reply.tone),
            suggestions=clean_suggestions(reply.suggestions),
        )
    return SantaReply(
        message=reply.message.strip(),
        tone=Tone.coerce(reply.tone),
        suggestions=clean_suggestions(reply.suggestions),
    )


# ─────────────────────────────────────────────────────────
#  RULE-BASED STRATEGY
# ─────────────────────────────────────────────────────────

def _wb(key: str) -> re.Pattern:
    """Compile a case-insensitive whole-word regex pattern for a keyword."""
    return re.compile(r"\b" + re.escape(key) + r"\b", re.IGNORECASE)


def _match(text: str, keywords: List[str]) -> bool:
    return any(_wb(k).search(text) for k in keywords)


_GREETINGS = ["hi", "hello", "hey", "hiya", "howdy", "good morning", "good evening", "merry christmas"]
_GIFTS = ["want", "wish", "wishlist", "gift", "gifts", "present", "presents", "toy", "toys", "bring me"]
_REINDEER = ["reindeer", "rudolph", "dasher", "dancer", "prancer", "vixen", "comet", "cupid", "donner", "blitzen", "sleigh"]
_ELVES = ["elf", "elves", "workshop", "make toys", "toy shop"]
_TREATS = ["cookie", "cookies", "milk", "snack", "carrots", "gingerbread"]
_BEING_GOOD = ["nice list", "naughty list", "naughty", "been good", "being good", "behave", "helped", "chores"]
_NORTH_POLE = ["north pole", "how old", "are you real", "mrs claus", "chimney", "snow", "cold"]
_THANKS = ["thanks", "thank you", "thx"]
_GOODBYE = ["bye", "goodbye", "see you", "good night", "goodnight"]

_RULES = [
    (_GOODBYE, Tone.JOLLY, [
        "Ho ho ho! Off to bed soon, my friend. The reindeer and I will be waving from the North Pole!",
        "Goodbye for now! Remember, Santa is always happy to hear from you. Ho ho ho!",
    ], []),
    (_THANKS, Tone.JOLLY, [
        "You're very welcome! Good manners make Santa's beard curl with joy. Ho ho ho!",
        "Ho ho ho! Thank YOU for writing to the North Pole!",
    ], ["Tell Santa about your day"]),
    (_REINDEER, Tone.PLAYFUL, [
        "Ho ho ho! Rudolph's nose has been glowing extra bright this year, and Dasher keeps trying to race the snowflakes!",
        "The reindeer are busy practicing their loop-de-loops over the North Pole. Blitzen is the silliest flier of them all!",
    ], ["Which reindeer is your favorite?", "Ask what reindeer like to eat"]),
    (_ELVES, Tone.PLAYFUL, [
        "The elves are hammering and painting day and night in the workshop! Jingle the elf just built a toy train that whistles carols.",
        "Ho ho ho! My elves sing while they work. Some of them sing rather off-key, but they have the biggest hearts!",
    ], ["Ask what the elves are making", "Tell Santa what you would build"]),
    (_TREATS, Tone.MERRY, [
        "Ho ho ho! Cookies and milk are Santa's favorite fuel for the long sleigh ride. Chocolate chip is hard to beat!",
        "Oh, the reindeer say thank you in advance for any carrots you leave out. They crunch them all the way to the next house!",
    ], ["Tell Santa your favorite cookie"]),
    (_NORTH_POLE, Tone.WISE, [
        "The North Pole is snowy, sparkly and full of magic. Mrs. Claus keeps the cocoa warm while the aurora dances overhead.",
        "Ho ho ho! Santa has been delivering holiday cheer for a very, very long time. The secret is believing in kindness.",
    ], ["Ask about Mrs. Claus", "Ask how the sleigh flies"]),
    (_BEING_GOOD, Tone.ENCOURAGING, [
        "Ho ho ho! Every kind thing you do makes the North Pole shine brighter. Keep up the wonderful work!",
        "Santa is so proud of you for trying your best. Being kind and helpful is the best gift of all!",
    ], ["Tell Santa something kind you did", "Add something to your wishlist"]),
]

_GREETING_RULE = (_GREETINGS, Tone.JOLLY, [
    "Ho ho ho! Hello there, my friend! The whole North Pole is buzzing with holiday cheer. How are you today?",
    "Merry greetings from the North Pole! Santa is so happy you stopped by. What's on your mind?",
], ["Tell Santa about your wishlist", "Ask about the reindeer"])

_GIFT_RESPONSES = [
    "Ho ho ho! What a wonderful wish! I've added it to my big book, and the elves are always excited to hear what children dream about.",
    "Oh my, that sounds marvelous! Santa loves hearing your wishes. Remember, the best gifts are shared with the people we love.",
]

_SAD_RESPONSES = [
    "Oh, my dear friend, Santa is sorry you're feeling that way. It's always okay to share your feelings with a grown-up you trust. Sending you a big warm hug from the North Pole.",
    "Santa hears you, and you are never alone. Talking to someone who loves you can make a heavy heart feel lighter. The elves and I are cheering for you!",
]

_GENERIC_RESPONSES = [
    "Ho ho ho! That's very interesting! Tell Santa more. The elves are listening too!",
    "What a delightful thing to share! The North Pole is a happier place because you wrote to me.",
    "Ho ho ho! Santa loves chatting with you. What else is happening in your holiday season?",
]


class RuleBasedSantaGenerator:
    """Keyword rules with the tone nudged by the child's mood."""

    async def generate(self, message: str, context: ChatContext) -> SantaReply:
        text = (message or "").strip()
        if not text:
            return fallback_reply(text)
        if is_unsafe(text):
            return redirect_reply(text)

        mood = detect_mood(text)
        if mood == "sad":
            return SantaReply(
                message=random.choice(_SAD_RESPONSES),
                tone=Tone.CARING,
                suggestions=["Tell Santa something that makes you smile"],
            )

        # topics outrank the broad gift words ("I want to hear about Rudolph")
        for keywords, tone, responses, suggestions in _RULES:
            if _match(text, keywords):
                return SantaReply(message=random.choice(responses), tone=tone, suggestions=list(suggestions))

        if _match(text, _GIFTS):
            return sanitize_reply(self._gift_reply(context), text)

        keywords, tone, responses, suggestions = _GREETING_RULE
        if _match(text, keywords):
            return SantaReply(message=random.choice(responses), tone=tone, suggestions=list(suggestions))

        tone = Tone.MERRY if mood == "happy" else Tone.JOLLY
        return SantaReply(
            message=random.choice(_GENERIC_RESPONSES),
            tone=tone,
            suggestions=["Tell Santa about your wishlist"],
        )

    @staticmethod
    def _gift_reply(context: ChatContext) -> SantaReply:
        wishes = [w for w in context.wishlist_items if not is_unsafe(w)][:2]
        if wishes:
            listed = " and ".join(wishes)
            message = (
                f"Ho ho ho! I see {listed} on your wishlist. What wonderful ideas! "
                "The elves and I will keep them in mind, and remember that kindness is the best present of all."
            )
        else:
            message = random.choice(_GIFT_RESPONSES)
        return SantaReply(
            message=message,
            tone=Tone.MERRY,
            suggestions=["Add something to your wishlist", "Tell Santa why you'd love it"],
        )


# ─────────────────────────────────────────────────────────
#  OPENAI STRATEGY
# ─────────────────────────────────────────────────────────

SYSTEM_PROMPT = """You are Santa Claus speaking with a child. Respond in a warm, jolly, and encouraging manner.
Keep responses concise (max 2-3 sentences) and age-appropriate.
Include occasional 'ho ho ho' and references to the North Pole, elves, or reindeer.
Never make promises about specific gifts. Instead, acknowledge the child's wishes positively.
Never repeat rude, scary or grown-up words. If the child brings up something unsafe or off-topic,
gently steer the conversation back to the holidays, kindness, or the North Pole.
If the child seems sad or worried, be caring and suggest talking to a trusted grown-up.

Reply with a JSON object only:
{"message": "<what Santa says>", "tone": "<one of: jolly, caring, encouraging, playful, wise, merry>",
 "suggestions": ["<up to 3 short follow-up ideas the child could say next>"]}"""


def parse_reply(content: Optional[str]) -> SantaReply:
    """Parse the model's JSON payload; raises ValueError when it is unusable."""
    if not content:
        raise ValueError("empty completion")
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ValueError(f"malformed completion: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("completion is not a JSON object")

    message = data.get("message")
    if not isinstance(message, str) or not message.strip():
        raise ValueError("completion has no message")

    return SantaReply(
        message=message.strip(),
        tone=Tone.coerce(data.get("tone")),
        suggestions=clean_suggestions(data.get("suggestions")),
    )


class OpenAISantaGenerator:
    """Persona replies from the OpenAI chat completions API."""

    def __init__(self, settings: Settings, client=None):
        self.model = settings.OPENAI_MODEL
        self.history_limit = settings.CHAT_CONTEXT_MESSAGES
        self._client = client
        if self._client is None and is_real_api_key(settings.OPENAI_API_KEY):
            self._client = openai.AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=settings.OPENAI_TIMEOUT,
            )

    def build_messages(self, message: str, context: ChatContext) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": SYSTEM_PROMPT}]
        wishes = [w for w in context.wishlist_items if not is_unsafe(w)]
        if wishes:
            messages.append({
                "role": "system",
                "content": "The child's wishlist so far: " + "; ".join(wishes),
            })
        for m in context.prior_messages[-self.history_limit:]:
            if m["role"] == "user" and is_unsafe(m["content"]):
                continue
            messages.append({"role": m["role"], "content": m["content"]})
        messages.append({"role": "user", "content": message})
        return messages

    async def generate(self, message: str, context: ChatContext) -> SantaReply:
        text = (message or "").strip()
        if not text:
            return fallback_reply(text)
        if is_unsafe(text):
            logger.info("Unsafe child message — redirecting without calling the model")
            return redirect_reply(text)

        if self._client is None:
            logger.warning("OPENAI_API_KEY not set — using fallback reply")
            return fallback_reply(text)

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(text, context),
                response_format={"type": "json_object"},
                temperature=0.7,
                max_tokens=300,
            )
            reply = parse_reply(response.choices[0].message.content)
        except Exception as e:
            logger.error(f"Santa generation error: {e}")
            return fallback_reply(text)

        return sanitize_reply(reply, text)


# ─────────────────────────────────────────────────────────
#  STRATEGY SELECTION
# ─────────────────────────────────────────────────────────

def build_generator(settings: Settings) -> SantaGenerator:
    strategy = settings.SANTA_STRATEGY.strip().lower()
    if strategy == "auto":
        strategy = "openai" if is_real_api_key(settings.OPENAI_API_KEY) else "rules"

    if strategy == "openai":
        generator = OpenAISantaGenerator(settings)
    elif strategy == "rules":
        generator = RuleBasedSantaGenerator()
    else:
        raise ValueError(f"Unknown SANTA_STRATEGY '{settings.SANTA_STRATEGY}' (expected auto, rules or openai)")

    logger.info(f"Santa reply strategy: {strategy}")
    return generator
