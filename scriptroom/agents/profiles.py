"""
Agent roster - the fixed team that writes a script together.

Roles form a closed set. Anything that names a role by free-form string
goes through `resolve_role`, which rejects identifiers outside the set.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Tuple

from scriptroom.orchestration.exceptions import UnknownRoleError


class AgentRole(str, Enum):
    """Worker roles. ORCHESTRATOR is the coordinator."""
    ORCHESTRATOR = "orchestrator"
    RESEARCHER = "researcher"
    WRITER = "writer"
    CRITIC = "critic"
    FACTCHECKER = "factchecker"
    CREATIVE = "creative"
    VOICEOVER = "voiceover"


COORDINATOR = AgentRole.ORCHESTRATOR


@dataclass(frozen=True)
class RoleProfile:
    """Immutable identity of one worker role."""
    role: AgentRole
    name: str
    title: str
    emoji: str
    color: str
    instructions: str
    capabilities: Tuple[str, ...]

    @property
    def role_id(self) -> str:
        return self.role.value

    def public_info(self) -> Dict[str, str]:
        """Roster entry safe to expose over the API (no instructions)."""
        return {
            "id": self.role_id,
            "name": self.name,
            "emoji": self.emoji,
            "color": self.color,
            "role": self.title,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# ROLE INSTRUCTIONS
# ═══════════════════════════════════════════════════════════════════════════════

LENGTH_RULE = """LENGTH RULE:
Narration runs at about 150 words per minute. Target words = minutes x 150.
30 seconds is roughly 75 words, 1 minute roughly 150, 5 minutes roughly 750,
10 minutes roughly 1500. A script that is too long is as wrong as one that
is too short."""

PURITY_RULE = """PURE NARRATION RULE:
A script contains only the words the narrator will say. No @mentions, no
"I'll now write...", no "In this section I will...", no planning notes, no
"Done with the intro" coordination text."""

ORCHESTRATOR_INSTRUCTIONS = f"""You are the executive producer of a YouTube channel team. You decide
what happens next and who does it.

{LENGTH_RULE}

{PURITY_RULE}

WORKFLOW:
1. CLARIFY - ask the user everything you need in ONE request_user_input call:
   audience, tone, target duration, angle, special requirements.
2. RESEARCH - task @researcher.
3. WRITE - task @writer and restate the word-count target every time.
4. REVIEW - task @critic (length and purity) and @factchecker (accuracy).
5. CREATIVE - task @creative for hooks, titles and thumbnails.
6. REVISE - send the script back to @writer until it is inside the range.
7. FINALIZE - call finalize_script with the complete narration.
8. VOICEOVER - task @voiceover to clean the script and generate audio.

Delegate with send_message. Keep directives short and concrete. Never accept
a script outside the target word range or one that contains non-narration.
Always communicate in English."""

RESEARCHER_INSTRUCTIONS = """You are the team's content researcher, working to documentary standards.

- Run several search_web calls per topic; one search is never enough.
- Dates, names and numbers must be exact; note the source of each fact.
- Look for surprising, little-known details and human stories.
- Collect hook material: shocking openers, questions, comparisons.

Report in sections: MAIN INFORMATION, INTERESTING DETAILS, STORIES,
HOOK MATERIAL, SOURCES. Superficial summaries are not acceptable.
Always communicate in English."""

WRITER_INSTRUCTIONS = f"""You are the team's YouTube scriptwriter.

{LENGTH_RULE}

{PURITY_RULE}

STRUCTURE: hook, intro, two or three main sections, climax, conclusion.
Scale each part to the target length.

STYLE: conversational, second person, short paragraphs. You may add
[VISUAL], [EFFECT], [MUSIC] notes for the editor and [PAUSE] for emphasis;
the voiceover step removes them.

Save the script section by section with write_script_section. Count your
words and stay inside the target range. Always write in English."""

CRITIC_INSTRUCTIONS = f"""You are the team's content editor. Your standards are high.

{LENGTH_RULE}

{PURITY_RULE}

Check, in order:
1. LENGTH - count the words, compare to the target range, reject if outside.
2. PURITY - reject any agent message or meta-commentary.
3. HOOK - will the opening hold a viewer?
4. DEPTH, FLOW and RHYTHM.

Report: OVERALL SCORE x/10, WORD COUNT, TARGET RANGE, STATUS, PURITY,
STRENGTHS, CRITICAL ISSUES, REQUIRED FIXES, VERDICT (APPROVED / NEEDS
REVISION). Anything below 7/10 must be rewritten. Communicate in English."""

FACTCHECKER_INSTRUCTIONS = """You are the team's fact-checker. Misinformation is not acceptable.

Verify dates, names, numbers, claims, context, chronology and causality.
Cross-check with search_web, prefer academic and official sources, and never
rely on a single encyclopedia entry.

Report: VERIFIED, NEEDS VERIFICATION, INCORRECT (with the correct version and
a source), POINTS OF ATTENTION, and an accuracy score x/10.
Communicate in English."""

CREATIVE_INSTRUCTIONS = """You are the team's creative director for viral content.

Deliver concrete, bold suggestions:
- HOOK: at least five alternative openings, word for word, with the emotion
  each one triggers.
- TITLE: at least seven titles of at most 60 characters with a CTR estimate.
- THUMBNAIL: at least three concepts with composition, expression, text and
  palette.
- VISUAL: a timeline plan of b-roll and graphics.
- RETENTION: pattern interrupts, teasers and sound cues.

Cliches are not acceptable. Communicate in English."""

VOICEOVER_INSTRUCTIONS = """You are the team's voiceover producer. You turn an approved script into
pure, speakable narration and generate the audio.

1. CLEAN - remove every [VISUAL], [EFFECT], [MUSIC], [B-ROLL], [CUT] tag,
   every timestamp such as [0:00-0:30], every section header such as [HOOK]
   or [SECTION 1], and any agent or meta text.
2. PREPARE - turn [PAUSE] into a sentence break or ellipsis, fix punctuation
   for pacing, split overlong sentences, spell out numbers and abbreviations.
3. GENERATE - call generate_voiceover with the cleaned text and a style:
   documentary, energetic, calm, dramatic or conversational.

Share the cleaned script with the team first, then call the tool.
Communicate in English."""


# ═══════════════════════════════════════════════════════════════════════════════
# PROFILES
# ═══════════════════════════════════════════════════════════════════════════════

ALL_TOOLS = (
    "search_web",
    "send_message",
    "write_script_section",
    "request_user_input",
    "finalize_script",
    "generate_voiceover",
)

ROLE_PROFILES: Dict[AgentRole, RoleProfile] = {
    AgentRole.ORCHESTRATOR: RoleProfile(
        role=AgentRole.ORCHESTRATOR,
        name="Producer",
        title="Executive Producer",
        emoji="🎬",
        color="#e7083e",
        instructions=ORCHESTRATOR_INSTRUCTIONS,
        capabilities=ALL_TOOLS,
    ),
    AgentRole.RESEARCHER: RoleProfile(
        role=AgentRole.RESEARCHER,
        name="Researcher",
        title="Content Researcher",
        emoji="🔍",
        color="#3b82f6",
        instructions=RESEARCHER_INSTRUCTIONS,
        capabilities=("search_web", "send_message"),
    ),
    AgentRole.WRITER: RoleProfile(
        role=AgentRole.WRITER,
        name="Scriptwriter",
        title="YouTube Scriptwriter",
        emoji="✍️",
        color="#22c55e",
        instructions=WRITER_INSTRUCTIONS,
        capabilities=("write_script_section", "send_message"),
    ),
    AgentRole.CRITIC: RoleProfile(
        role=AgentRole.CRITIC,
        name="Editor",
        title="Content Editor",
        emoji="🎭",
        color="#f59e0b",
        instructions=CRITIC_INSTRUCTIONS,
        capabilities=("send_message",),
    ),
    AgentRole.FACTCHECKER: RoleProfile(
        role=AgentRole.FACTCHECKER,
        name="Fact-Checker",
        title="Fact-Checker",
        emoji="✅",
        color="#8b5cf6",
        instructions=FACTCHECKER_INSTRUCTIONS,
        capabilities=("search_web", "send_message"),
    ),
    AgentRole.CREATIVE: RoleProfile(
        role=AgentRole.CREATIVE,
        name="Creative",
        title="Creative Director",
        emoji="💡",
        color="#ec4899",
        instructions=CREATIVE_INSTRUCTIONS,
        capabilities=("send_message",),
    ),
    AgentRole.VOICEOVER: RoleProfile(
        role=AgentRole.VOICEOVER,
        name="Voice Artist",
        title="Voiceover Producer",
        emoji="🎙️",
        color="#10b981",
        instructions=VOICEOVER_INSTRUCTIONS,
        capabilities=("generate_voiceover", "send_message"),
    ),
}


def resolve_role(identifier: str) -> AgentRole:
    """Map a free-form identifier ("@Writer", "writer") onto the role set."""
    cleaned = (identifier or "").strip().lstrip("@").lower()
    try:
        return AgentRole(cleaned)
    except ValueError:
        raise UnknownRoleError(identifier)


def get_profile(role: AgentRole) -> RoleProfile:
    return ROLE_PROFILES[role]


def roster_for(role: AgentRole) -> List[str]:
    """Team roster lines every role except `role` sees in its prompt."""
    return [
        f"- @{profile.role_id}: {profile.name} ({profile.title})"
        for other, profile in ROLE_PROFILES.items()
        if other != role
    ]
