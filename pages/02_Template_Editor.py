"""Create and edit checkup templates and their questionnaires."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pandas as pd
import streamlit as st

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from checkup_admin import questionnaire_editor as editor
from checkup_admin.api_client import ApiError, SessionExpiredError, error_message
from checkup_admin.app_session import (
    EDITOR_DRAFT_SESSIONS_STATE_KEY,
    get_auth_events,
    get_client,
    get_settings,
    handle_session_expired,
    require_login,
)
from checkup_admin.condition_graph import is_visible
from checkup_admin.drafts import SOURCE_AUTH_BACKUP, DraftSession, DraftStore
from checkup_admin.question_import import QuestionImportError, parse_questions_from_file
from checkup_admin.question_model import (
    FIELD_TYPES,
    FORM,
    QUESTION_TYPE_LABELS,
    QUESTION_TYPES,
    is_choice_type,
    question_fields,
    question_variants,
)
from checkup_admin.template_schema import (
    default_template,
    payload_for_save,
    template_from_record,
    validate_template,
)
from checkup_admin.ui_theme import apply_app_theme, badge, page_header, section_card
from checkup_admin.uploads import (
    QUESTION_IMAGE_MAX_BYTES,
    TEMPLATE_IMAGE_MAX_BYTES,
    UploadError,
    upload_image,
)

EDITOR_TEMPLATE_STATE_KEY = "editor_template_id"
FORMS_STATE_KEY = "editor_forms"
REVISION_STATE_KEY = "editor_revisions"
ACTIVE_ROUTE_STATE_KEY = "editor_active_route"
RESTORE_NOTICE_STATE_KEY = "editor_restore_notice"
FLASH_STATE_KEY = "editor_flash"
PREVIEW_ANSWERS_STATE_KEY = "editor_preview_answers"
TEMPLATES_PAGE = "pages/01_Checkup_Templates.py"
CREATE_ROUTE = "/checkup-templates/create"


def route_for(template_id: Optional[str]) -> str:
    """Return the page path a draft is tagged with."""

    return f"/checkup-templates/{template_id}" if template_id else CREATE_ROUTE


def _selected_template_id() -> Optional[str]:
    template_id = st.query_params.get("id") or st.session_state.get(EDITOR_TEMPLATE_STATE_KEY)
    return str(template_id) if template_id else None


def _forms() -> Dict[str, Dict[str, Any]]:
    return st.session_state.setdefault(FORMS_STATE_KEY, {})


def _draft_sessions() -> Dict[str, DraftSession]:
    return st.session_state.setdefault(EDITOR_DRAFT_SESSIONS_STATE_KEY, {})


def _revision(route: str) -> int:
    return st.session_state.setdefault(REVISION_STATE_KEY, {}).get(route, 0)


def _bump_revision(route: str) -> None:
    revisions = st.session_state.setdefault(REVISION_STATE_KEY, {})
    revisions[route] = revisions.get(route, 0) + 1


def _prefix(route: str) -> str:
    safe = "".join(ch if ch.isalnum() else "_" for ch in route)
    return f"{safe}_{_revision(route)}"


def _flash(kind: str, message: str) -> None:
    st.session_state.setdefault(FLASH_STATE_KEY, []).append((kind, message))


def _show_flash() -> None:
    for kind, message in st.session_state.pop(FLASH_STATE_KEY, []):
        getattr(st, kind)(message)


def _close_other_sessions(route: str) -> None:
    """Snapshot and stop sessions of templates the admin navigated away from."""

    previous = st.session_state.get(ACTIVE_ROUTE_STATE_KEY)
    if previous and previous != route:
        session = _draft_sessions().get(previous)
        if session is not None:
            session.on_unload()
            session.stop()
    st.session_state[ACTIVE_ROUTE_STATE_KEY] = route


def open_session(template_id: Optional[str]) -> Tuple[Dict[str, Any], DraftSession]:
    """Return the form state and draft session for the template being edited.

    On first open the local drafts are checked before the server copy is
    fetched, and the autosave timer is started.
    """

    route = route_for(template_id)
    _close_other_sessions(route)
    forms = _forms()
    sessions = _draft_sessions()
    settings = get_settings()

    session = sessions.get(route)
    if session is None:
        form: Dict[str, Any] = default_template()
        forms[route] = form
        session = DraftSession(
            DraftStore(settings.drafts_dir),
            route,
            lambda: forms[route],
            template_id,
        )
        sessions[route] = session
        result = session.restore()
        if result.restored:
            form.update(result.data or {})
            if result.source == SOURCE_AUTH_BACKUP:
                _flash("info", "Unsaved changes from before your session expired were restored.")
            else:
                st.session_state[RESTORE_NOTICE_STATE_KEY] = route
        elif template_id:
            try:
                record = get_client().get_checkup_template(template_id)
            except ApiError:
                sessions.pop(route, None)
                forms.pop(route, None)
                raise
            form.update(template_from_record(record))
            session.mark_loaded()
        else:
            session.mark_loaded()
        _bump_revision(route)

    session.start_autosave(settings.autosave_interval, get_auth_events())
    return forms[route], session


def discard_draft(template_id: Optional[str]) -> None:
    """Drop the restored draft and reload the authoritative copy."""

    route = route_for(template_id)
    session = _draft_sessions().pop(route, None)
    if session is not None:
        session.stop()
        session.discard()
    _forms().pop(route, None)
    st.session_state.pop(RESTORE_NOTICE_STATE_KEY, None)


def _apply(route: str, operation: Callable[..., List[Dict[str, Any]]], *args: Any) -> bool:
    """Run an editor operation on the route's questions, reporting contract errors."""

    form = _forms()[route]
    try:
        form["questions"] = operation(form.get("questions", []), *args)
    except editor.QuestionnaireEditError as exc:
        _flash("error", str(exc))
        return False
    return True


def render_restore_notice(template_id: Optional[str]) -> None:
    route = route_for(template_id)
    if st.session_state.get(RESTORE_NOTICE_STATE_KEY) != route:
        return
    col_text, col_button = st.columns([4, 1])
    with col_text:
        st.info("A locally saved draft of this template was restored.")
    with col_button:
        if st.button("Discard draft", key=f"{_prefix(route)}_discard_draft"):
            discard_draft(template_id)
            st.rerun()


def _image_input(label: str, current: Optional[str], key: str, max_bytes: int) -> Optional[str]:
    """Render an image picker and return the (possibly new) image URL."""

    if current:
        st.image(current, width=160)
    uploaded = st.file_uploader(label, type=["png", "jpg", "jpeg", "webp", "gif"], key=key)
    col_upload, col_remove = st.columns(2)
    with col_upload:
        if uploaded is not None and st.button("Upload image", key=f"{key}_upload"):
            try:
                url = upload_image(get_client(), uploaded.name, uploaded.getvalue(), uploaded.type, max_bytes)
            except SessionExpiredError:
                raise
            except UploadError as exc:
                st.error(str(exc))
            else:
                st.success("Image uploaded.")
                return url
    with col_remove:
        if current and st.button("Remove image", key=f"{key}_remove"):
            return None
    return current


def render_basic_info(form: Dict[str, Any], route: str) -> None:
    prefix = _prefix(route)
    with section_card("Basic information", "Shown on the checkup card and landing page."):
        col_key, col_title = st.columns([1, 2])
        with col_key:
            form["testKey"] = st.text_input(
                "Test key",
                value=form.get("testKey", ""),
                key=f"{prefix}_testKey",
                help="Latin letters, digits, hyphens and underscores.",
            )
        with col_title:
            form["title"] = st.text_input("Title", value=form.get("title", ""), key=f"{prefix}_title")
        col_ct, col_cs = st.columns(2)
        with col_ct:
            form["carouselTitle"] = st.text_input(
                "Carousel title", value=form.get("carouselTitle", ""), key=f"{prefix}_carouselTitle"
            )
        with col_cs:
            form["carouselSubtitle"] = st.text_input(
                "Carousel subtitle", value=form.get("carouselSubtitle", ""), key=f"{prefix}_carouselSubtitle"
            )
        form["description"] = st.text_area(
            "Description", value=form.get("description", ""), key=f"{prefix}_description"
        )
        benefits_text = st.text_area(
            "Benefits (one per line)",
            value="\n".join(item for item in form.get("benefits", []) if item),
            key=f"{prefix}_benefits",
        )
        form["benefits"] = [line.strip() for line in benefits_text.splitlines() if line.strip()] or [""]

        col_free, col_price, col_active = st.columns(3)
        with col_free:
            form["free"] = st.checkbox("Free", value=bool(form.get("free")), key=f"{prefix}_free")
        with col_price:
            if form["free"]:
                form.pop("price", None)
            else:
                price = st.number_input(
                    "Price",
                    min_value=0,
                    value=int(form.get("price") or 0),
                    step=100,
                    key=f"{prefix}_price",
                )
                form["price"] = int(price) if price else None
        with col_active:
            form["isActive"] = st.checkbox(
                "Active", value=bool(form.get("isActive", True)), key=f"{prefix}_isActive"
            )
        form["pdfTemplate"] = st.text_input(
            "PDF template", value=form.get("pdfTemplate") or "", key=f"{prefix}_pdfTemplate"
        ) or None
        image = _image_input("Cover image", form.get("image"), f"{prefix}_image", TEMPLATE_IMAGE_MAX_BYTES)
        if image != form.get("image"):
            form["image"] = image
            _bump_revision(route)
            st.rerun()


def render_doctors(form: Dict[str, Any], route: str) -> None:
    with section_card("Doctors", "Specialists presented alongside the checkup."):
        doctors = form.get("doctors") or []
        frame = pd.DataFrame(doctors, columns=["role", "name", "instagram"])
        edited = st.data_editor(
            frame,
            num_rows="dynamic",
            hide_index=True,
            use_container_width=True,
            key=f"{_prefix(route)}_doctors",
        )
        rows = edited.fillna("").to_dict(orient="records")
        form["doctors"] = [
            {key: str(row.get(key, "")).strip() for key in ("role", "name", "instagram")}
            for row in rows
            if any(str(value).strip() for value in row.values())
        ]


def _render_variants(route: str, position: int, question: Dict[str, Any], prefix: str) -> Optional[Tuple]:
    action: Optional[Tuple] = None
    variants = question_variants(question)
    st.markdown("**Answer variants**")
    for variant_index, variant in enumerate(variants):
        col_value, col_label, col_remove = st.columns([1, 5, 1])
        with col_value:
            value = st.text_input(
                "Value", value=variant.get("value", ""), key=f"{prefix}_v{variant_index}_value",
                label_visibility="collapsed",
            )
        with col_label:
            label = st.text_input(
                "Label", value=variant.get("label", ""), key=f"{prefix}_v{variant_index}_label",
                label_visibility="collapsed", placeholder="Variant text",
            )
        with col_remove:
            if len(variants) > 1 and st.button("✕", key=f"{prefix}_v{variant_index}_remove"):
                action = (editor.remove_answer_variant, position, variant_index)
        if value != variant.get("value"):
            _apply(route, editor.update_answer_variant, position, variant_index, "value", value)
        if label != variant.get("label"):
            _apply(route, editor.update_answer_variant, position, variant_index, "label", label)
    if st.button("Add variant", key=f"{prefix}_add_variant"):
        action = (editor.add_answer_variant, position)
    return action


def _render_form_fields(route: str, position: int, question: Dict[str, Any], prefix: str) -> Optional[Tuple]:
    action: Optional[Tuple] = None
    st.markdown("**Form fields**")
    for field_index, field in enumerate(question_fields(question)):
        field_prefix = f"{prefix}_f{field_index}"
        col_label, col_name, col_type, col_remove = st.columns([3, 2, 2, 1])
        with col_label:
            label = st.text_input("Label", value=field.get("label", ""), key=f"{field_prefix}_label",
                                  placeholder="Height (cm)")
        with col_name:
            name = st.text_input("Name", value=field.get("name", ""), key=f"{field_prefix}_name",
                                 placeholder="height")
        with col_type:
            current_type = field.get("type", "text")
            field_type = st.selectbox(
                "Type", FIELD_TYPES,
                index=FIELD_TYPES.index(current_type) if current_type in FIELD_TYPES else 0,
                key=f"{field_prefix}_type",
            )
        with col_remove:
            if st.button("✕", key=f"{field_prefix}_remove"):
                action = (editor.remove_form_field, position, field_index)
        for key, value in (("label", label), ("name", name), ("type", field_type)):
            if value != field.get(key, "text" if key == "type" else ""):
                _apply(route, editor.update_form_field, position, field_index, key, value)
        if field_type == "number":
            col_min, col_max = st.columns(2)
            with col_min:
                minimum = st.number_input("Min", value=field.get("min"), key=f"{field_prefix}_min")
            with col_max:
                maximum = st.number_input("Max", value=field.get("max"), key=f"{field_prefix}_max")
            for key, value in (("min", minimum), ("max", maximum)):
                if value != field.get(key):
                    _apply(route, editor.update_form_field, position, field_index, key, value)
    if st.button("Add field", key=f"{prefix}_add_field"):
        action = (editor.add_form_field, position)
    return action


def _render_condition(route: str, position: int, question: Dict[str, Any], prefix: str) -> None:
    questions = _forms()[route]["questions"]
    candidates = editor.condition_candidates(questions, position)
    condition = question.get("condition")
    enabled = st.checkbox(
        "Show only for specific answers",
        value=bool(condition),
        key=f"{prefix}_has_condition",
        disabled=not candidates and not condition,
    )
    if not enabled:
        if condition:
            _apply(route, editor.clear_condition, position)
        return
    if not candidates:
        st.caption("No earlier question with answer variants to depend on.")
        return

    candidate_ids = [candidate["id"] for candidate in candidates]
    current_id = condition.get("questionId") if condition else candidate_ids[0]
    if current_id not in candidate_ids:
        current_id = candidate_ids[0]
    lookup = {candidate["id"]: candidate for candidate in candidates}
    depends_on = st.selectbox(
        "Depends on question",
        candidate_ids,
        index=candidate_ids.index(current_id),
        format_func=lambda qid: f"{qid}. {lookup[qid].get('question') or '(no text)'}",
        key=f"{prefix}_condition_question",
    )
    variants = question_variants(lookup[depends_on])
    variant_values = [variant.get("value") for variant in variants]
    current_values = (condition or {}).get("values", []) if (condition or {}).get("questionId") == depends_on else []
    selected = st.multiselect(
        "Show for answers",
        variant_values,
        default=[value for value in current_values if value in variant_values],
        format_func=lambda value: next(
            (variant.get("label") or value for variant in variants if variant.get("value") == value), value
        ),
        key=f"{prefix}_condition_values_{depends_on}",
    )
    if not selected:
        st.caption("Select at least one answer.")
    if not condition or condition.get("questionId") != depends_on or condition.get("values") != selected:
        _apply(route, editor.set_condition, position, depends_on, selected)


def render_question(route: str, position: int, question: Dict[str, Any]) -> Optional[Tuple]:
    """Render one question; return a pending structural action, if any."""

    prefix = f"{_prefix(route)}_q{position}"
    total = len(_forms()[route]["questions"])
    action: Optional[Tuple] = None

    title = question.get("question") or "(no text)"
    condition = question.get("condition")
    header = f"Q{question.get('index')}. {title[:50]}{'...' if len(title) > 50 else ''}"
    with st.expander(header, expanded=not question.get("question")):
        if condition:
            st.markdown(
                badge(f"Shown if Q{condition.get('questionId')} = [{', '.join(condition.get('values', []))}]"),
                unsafe_allow_html=True,
            )
        col_up, col_down, col_copy, col_delete = st.columns(4)
        with col_up:
            if st.button("Move up", key=f"{prefix}_up", disabled=position == 0):
                action = (editor.move_question, position, editor.UP)
        with col_down:
            if st.button("Move down", key=f"{prefix}_down", disabled=position == total - 1):
                action = (editor.move_question, position, editor.DOWN)
        with col_copy:
            if st.button("Duplicate", key=f"{prefix}_duplicate"):
                action = (editor.duplicate_question, position)
        with col_delete:
            if st.button("Delete", key=f"{prefix}_delete"):
                action = (editor.remove_question, position)

        text = st.text_area("Question text", value=question.get("question", ""), key=f"{prefix}_text")
        if text != question.get("question", ""):
            _apply(route, editor.set_question_field, position, "question", text)

        current_type = question.get("type")
        question_type = st.selectbox(
            "Question type",
            QUESTION_TYPES,
            index=QUESTION_TYPES.index(current_type) if current_type in QUESTION_TYPES else 0,
            format_func=lambda value: QUESTION_TYPE_LABELS.get(value, value),
            key=f"{prefix}_type",
        )
        if question_type != current_type:
            action = (editor.set_question_field, position, "type", question_type)

        image = _image_input("Question image", question.get("image"), f"{prefix}_image", QUESTION_IMAGE_MAX_BYTES)
        if image != question.get("image"):
            action = (editor.set_question_field, position, "image", image)

        if is_choice_type(question_type):
            action = _render_variants(route, position, question, prefix) or action
        elif question_type == FORM:
            action = _render_form_fields(route, position, question, prefix) or action

        col_other, col_none = st.columns(2)
        with col_other:
            has_other = st.checkbox('Add "Other" answer', value=bool(question.get("hasOtherAnswer")),
                                    key=f"{prefix}_other")
        with col_none:
            has_none = st.checkbox('Add "None of the above" answer',
                                   value=bool(question.get("hasNoSelectedAnswer")), key=f"{prefix}_none")
        if has_other != bool(question.get("hasOtherAnswer")):
            _apply(route, editor.set_question_field, position, "hasOtherAnswer", has_other)
        if has_none != bool(question.get("hasNoSelectedAnswer")):
            _apply(route, editor.set_question_field, position, "hasNoSelectedAnswer", has_none)

        if position > 0:
            _render_condition(route, position, question, prefix)
    return action


def render_import(route: str) -> Optional[Tuple]:
    form = _forms()[route]
    with st.expander("Import questions from file"):
        st.caption("Supported formats: .txt, .md, .docx (up to 5MB). Numbered lines start questions.")
        uploaded = st.file_uploader(
            "Questions file", type=["txt", "md", "docx"], key=f"{_prefix(route)}_import_file"
        )
        if uploaded is not None and st.button("Import", key=f"{_prefix(route)}_import"):
            try:
                imported = parse_questions_from_file(
                    uploaded.name,
                    uploaded.getvalue(),
                    uploaded.type,
                    existing_count=len(form.get("questions", [])),
                )
            except QuestionImportError as exc:
                st.error(str(exc))
                return None
            _flash("success", f"Imported {len(imported)} questions.")
            return (editor.import_questions, imported)
    return None


def render_questions(route: str) -> None:
    with section_card("Questionnaire", "Questions asked to users taking the checkup."):
        action = render_import(route)
        questions = list(_forms()[route].get("questions", []))
        if not questions:
            st.info("No questions yet. Add one or import them from a file.")
        for position, question in enumerate(questions):
            action = render_question(route, position, question) or action
        if st.button("Add question", key=f"{_prefix(route)}_add_question", type="primary"):
            action = (editor.add_question,)

    if action is not None:
        operation, *args = action
        _apply(route, operation, *args)
        _bump_revision(route)
        st.rerun()


def render_preview(form: Dict[str, Any], route: str) -> None:
    with st.expander("Preview", expanded=False):
        st.subheader(form.get("title") or "Checkup title")
        price = "Free" if form.get("free") or not form.get("price") else f"{form['price']:,} ₸"
        st.caption(f"{'Active' if form.get('isActive') else 'Inactive'} · {price}")
        if form.get("image"):
            st.image(form["image"], width=320)
        st.write(form.get("description") or "Checkup description...")
        for benefit in form.get("benefits", []):
            if benefit:
                st.markdown(f"- {benefit}")

        answers: Dict[str, Any] = st.session_state.setdefault(PREVIEW_ANSWERS_STATE_KEY, {}).setdefault(route, {})
        questions = form.get("questions", [])
        visible_ids = set()
        for question in questions:
            if not is_visible(question, answers):
                continue
            visible_ids.add(question["id"])
            key = f"{_prefix(route)}_preview_{question['id']}"
            label = f"{question['index']}. {question.get('question') or 'Question text'}"
            options = [variant.get("value") for variant in question_variants(question)]
            labels = {variant.get("value"): variant.get("label") or variant.get("value")
                      for variant in question_variants(question)}
            if question.get("type") in {"single", "single-with-input"} and options:
                answers[question["id"]] = st.radio(label, options, format_func=labels.get, key=key, index=None)
            elif options:
                answers[question["id"]] = st.multiselect(label, options, format_func=labels.get, key=key)
            else:
                st.markdown(f"**{label}**")
                for field in question_fields(question):
                    st.text_input(field.get("label") or field.get("name") or "Field", key=f"{key}_{field.get('name')}")
        for question_id in list(answers):
            if question_id not in visible_ids:
                answers.pop(question_id, None)


def handle_save(template_id: Optional[str], session: DraftSession, publish: Optional[bool] = None) -> None:
    """Validate and send the template; drafts are kept when saving fails."""

    form = _forms()[session.route_path]
    payload = payload_for_save(form)
    if publish is not None:
        payload["isActive"] = publish
    errors = validate_template(payload, require_carousel=template_id is not None)
    if errors:
        for error in errors:
            st.error(error)
        return

    client = get_client()
    try:
        if template_id:
            client.update_checkup_template(template_id, payload)
        else:
            client.create_checkup_template(payload)
    except SessionExpiredError:
        raise
    except ApiError as exc:
        st.error(error_message(exc, "Could not save the checkup template."))
        return

    session.on_saved()
    _draft_sessions().pop(session.route_path, None)
    _forms().pop(session.route_path, None)
    st.session_state.pop(EDITOR_TEMPLATE_STATE_KEY, None)
    st.session_state.pop(ACTIVE_ROUTE_STATE_KEY, None)
    st.toast("Checkup template saved.")
    st.switch_page(TEMPLATES_PAGE)


def main() -> None:
    """Render the template editor page."""

    apply_app_theme(page_title="Checkup template editor", page_icon="🩺")
    require_login()

    template_id = _selected_template_id()
    page_header(
        "Edit checkup template" if template_id else "New checkup template",
        "Changes are autosaved locally until you save them to the server.",
        icon="🩺",
    )

    try:
        form, session = open_session(template_id)
        route = session.route_path
        _show_flash()
        render_restore_notice(template_id)
        render_basic_info(form, route)
        render_doctors(form, route)
        render_questions(route)
        render_preview(form, route)

        st.divider()
        if template_id:
            if st.button("Save changes", type="primary"):
                handle_save(template_id, session)
        else:
            col_draft, col_publish = st.columns(2)
            with col_draft:
                if st.button("Save as draft"):
                    handle_save(None, session, publish=False)
            with col_publish:
                if st.button("Publish", type="primary"):
                    handle_save(None, session, publish=True)
    except SessionExpiredError as exc:
        handle_session_expired(exc)
    except ApiError as exc:
        st.error(error_message(exc, "Could not load the checkup template."))


if __name__ == "__main__":
    main()
