"""
Save an edited form by converging its persisted sections and questions
onto the editor's draft.

The draft carries no identifiers for rows that do not exist yet. Sections
are matched to persisted rows by title (falling back to position) and
questions by their text and type; unmatched draft rows are created.
Unmatched sections whose title is gone and questions whose text is gone
are deleted. Two questions sharing text and type both match the first.
Questions may point at a section that is only created during the save,
so every section is written before any question is resolved.

Calls run one after another and the first failing call aborts the save.
Nothing is rolled back: rows written before the failure stay written.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from formdesk.schemas.form import (
    DraftQuestion,
    DraftSection,
    PersistedRef,
    PlaceholderRef,
    Question,
    Section,
)
from formdesk.services.form_queries import FormQueries

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    created_sections: List[str] = field(default_factory=list)
    updated_sections: List[str] = field(default_factory=list)
    deleted_sections: List[str] = field(default_factory=list)
    created_questions: List[str] = field(default_factory=list)
    updated_questions: List[str] = field(default_factory=list)
    deleted_questions: List[str] = field(default_factory=list)
    # "order-<n>" placeholders and matched real ids -> persisted section id
    section_ids: Dict[str, str] = field(default_factory=dict)

    @property
    def created(self) -> int:
        return len(self.created_sections) + len(self.created_questions)

    @property
    def deleted(self) -> int:
        return len(self.deleted_sections) + len(self.deleted_questions)


def match_section(
    draft: DraftSection,
    existing: List[Section],
    desired_titles: set,
    claimed: set,
) -> Optional[Section]:
    for section in existing:
        if section.title == draft.title:
            return section

    # Positional fallback for renamed sections. A section another draft
    # section will claim by title, or one already matched, is not eligible.
    if 0 <= draft.order < len(existing):
        candidate = existing[draft.order]
        if candidate.id not in claimed and candidate.title not in desired_titles:
            return candidate
    return None


def match_question(draft: DraftQuestion, existing: List[Question]) -> Optional[Question]:
    for question in existing:
        if question.text == draft.text and question.type == draft.type:
            return question
    return None


class FormReconciler:
    def __init__(self, queries: FormQueries):
        self.queries = queries

    def reconcile(
        self,
        form_id: str,
        sections: List[DraftSection],
        questions: List[DraftQuestion],
    ) -> ReconciliationResult:
        result = ReconciliationResult()
        existing_sections = self.queries.get_sections(form_id)
        existing_questions = self.queries.get_questions(form_id)

        matched_sections = self._save_sections(form_id, sections, existing_sections, result)
        self._delete_sections(sections, existing_sections, matched_sections, result)

        surviving = {s.id for s in existing_sections} - set(result.deleted_sections)
        matches = [match_question(q, existing_questions) for q in questions]
        self._delete_questions(questions, existing_questions, result)
        self._save_questions(form_id, questions, matches, surviving, result)

        logger.info(
            "Reconciled form %s: sections +%d ~%d -%d, questions +%d ~%d -%d",
            form_id,
            len(result.created_sections),
            len(result.updated_sections),
            len(result.deleted_sections),
            len(result.created_questions),
            len(result.updated_questions),
            len(result.deleted_questions),
        )
        return result

    def _save_sections(
        self,
        form_id: str,
        sections: List[DraftSection],
        existing: List[Section],
        result: ReconciliationResult,
    ) -> set:
        desired_titles = {s.title for s in sections}
        claimed = set()

        for draft in sections:
            placeholder = PlaceholderRef(order=draft.order).key
            matched = match_section(draft, existing, desired_titles, claimed)
            if matched is not None:
                self.queries.update_section(
                    matched.id, title=draft.title, order=draft.order, description=draft.description
                )
                claimed.add(matched.id)
                result.updated_sections.append(matched.id)
                result.section_ids[matched.id] = matched.id
                result.section_ids[placeholder] = matched.id
            else:
                created = self.queries.create_section(
                    form_id, title=draft.title, order=draft.order, description=draft.description
                )
                result.created_sections.append(created.id)
                result.section_ids[placeholder] = created.id
        return claimed

    def _delete_sections(
        self,
        sections: List[DraftSection],
        existing: List[Section],
        matched: set,
        result: ReconciliationResult,
    ) -> None:
        desired_titles = {s.title for s in sections}
        for section in existing:
            if section.title in desired_titles or section.id in matched:
                continue
            self.queries.delete_section(section.id)
            result.deleted_sections.append(section.id)

    def _delete_questions(
        self,
        questions: List[DraftQuestion],
        existing: List[Question],
        result: ReconciliationResult,
    ) -> None:
        # Text alone decides; a type change keeps the old row
        desired_texts = {q.text for q in questions}
        for question in existing:
            if question.text in desired_texts:
                continue
            self.queries.delete_question(question.id)
            result.deleted_questions.append(question.id)

    def resolve_section(
        self, draft: DraftQuestion, surviving: set, result: ReconciliationResult
    ) -> Optional[str]:
        ref = draft.section_ref
        if isinstance(ref, PlaceholderRef):
            return result.section_ids.get(ref.key)
        if isinstance(ref, PersistedRef):
            if ref.id in result.section_ids:
                return result.section_ids[ref.id]
            if ref.id in surviving:
                return ref.id
        return None

    def _save_questions(
        self,
        form_id: str,
        questions: List[DraftQuestion],
        matches: List[Optional[Question]],
        surviving: set,
        result: ReconciliationResult,
    ) -> None:
        for draft, matched in zip(questions, matches):
            section_id = self.resolve_section(draft, surviving, result)
            fields = dict(
                order=draft.order,
                type=draft.type.value,
                text=draft.text,
                required=draft.required,
                options=draft.options,
                section_id=section_id,
            )
            if matched is not None:
                self.queries.update_question(matched.id, **fields)
                result.updated_questions.append(matched.id)
            else:
                created = self.queries.create_question(form_id, **fields)
                result.created_questions.append(created.id)
