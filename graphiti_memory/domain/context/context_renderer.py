from typing import List

from graphiti_memory.domain.models.memory_models import (
    Fact,
    RetrievedFacts,
    SourceGroup,
    SourceType,
    Turn,
)

FACTS_HEADER = "=== Relevant Facts from Long-term Memory ==="
RECENT_HEADER = "=== Recent Conversation ==="
NO_HISTORY_PLACEHOLDER = "No previous conversation history."
UNKNOWN_FILE = "unknown file"


class ContextRenderer:
    """Renders retrieved facts and recent turns into one context block.

    Facts and turns are kept in separate labeled sections; file-sourced groups
    are listed before conversation-sourced ones, and order within a group is
    the order the service returned.
    """

    def render(self, facts: RetrievedFacts, turns: List[Turn]) -> str:
        content = ""

        facts_block = self.render_facts(facts)
        if facts_block:
            content += f"{FACTS_HEADER}\n{facts_block}\n"

        if turns:
            content += f"{RECENT_HEADER}\n{self.render_turns(turns)}"

        return content or NO_HISTORY_PLACEHOLDER

    def render_facts(self, facts: RetrievedFacts) -> str:
        if facts.groups:
            return self._render_groups(facts.groups)
        if facts.hits:
            return "\n" + self._render_numbered(facts.hits, indent="")
        return ""

    def render_turns(self, turns: List[Turn]) -> str:
        return "\n".join(f"{turn.speaker}: {turn.content}" for turn in turns)

    def _render_groups(self, groups: List[SourceGroup]) -> str:
        rendered = ""

        for group in groups:
            if group.source_type == SourceType.FILE and group.facts:
                rendered += f"\n📄 From file: {group.source_name or UNKNOWN_FILE}\n"
                rendered += self._render_numbered(group.facts)

        for group in groups:
            if group.source_type == SourceType.CONVERSATION and group.facts:
                rendered += "\n💬 From conversation:\n"
                rendered += self._render_numbered(group.facts)

        return rendered

    @staticmethod
    def _render_numbered(facts: List[Fact], indent: str = "  ") -> str:
        return "".join(
            f"{indent}{index}. {fact.fact} (confidence: {fact.score:.2f})\n"
            for index, fact in enumerate(facts, start=1)
        )
