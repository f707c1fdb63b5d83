from __future__ import annotations

from tutor.routers.translation import EMPTY_INPUT_SUMMARY, FALLBACK_PARAGRAPH, FALLBACK_SUMMARY

HINDI = "आज मौसम बहुत अच्छा है। मैं शाम को पार्क में टहलने जाऊँगा।"


def test_generate_paragraph(client, llm) -> None:
    llm.queue({"hindiParagraph": HINDI})
    r = client.post("/translation/paragraph")
    assert r.status_code == 200
    assert r.json() == {"hindiParagraph": HINDI}
    assert "Devanagari" in llm.last_prompt
    assert client.get("/progress").json()["translation"]["last_paragraph"] == HINDI


def test_generate_paragraph_with_topic_hint(client, llm) -> None:
    llm.queue({"hindiParagraph": HINDI})
    client.post("/translation/paragraph", json={"topic": "monsoon season"})
    assert "monsoon season" in llm.last_prompt


def test_generate_paragraph_fallback(client, llm) -> None:
    llm.queue("")
    r = client.post("/translation/paragraph", json={})
    assert r.json() == {"hindiParagraph": FALLBACK_PARAGRAPH}


def test_evaluate_blank_input_skips_model(client, llm) -> None:
    r = client.post(
        "/translation/evaluate",
        json={"originalHindiParagraph": HINDI, "userEnglishTranslation": "  "},
    )
    assert r.status_code == 200
    assert r.json() == {
        "isTranslationAccurate": False,
        "feedbackSummary": EMPTY_INPUT_SUMMARY,
        "detailedFeedbackItems": [],
    }
    assert llm.prompts == []


def test_evaluate_translation_with_items(client, llm) -> None:
    llm.queue(
        {
            "isTranslationAccurate": False,
            "feedbackSummary": "Good effort! A few areas to work on.",
            "detailedFeedbackItems": [
                {
                    "originalHindiSegment": "टहलने जाऊँगा",
                    "userTranslationSegment": "will walking",
                    "suggestedCorrection": "will go for a walk",
                    "explanation": "After 'will' use the base form.",
                    "errorType": "grammar",
                },
                {
                    "suggestedCorrection": "pleasant",
                    "explanation": "'Pleasant' is more natural for weather.",
                    "errorType": "word choice",
                },
            ],
        }
    )
    r = client.post(
        "/translation/evaluate",
        json={"originalHindiParagraph": HINDI, "userEnglishTranslation": "Weather is very good. I will walking in park."},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["isTranslationAccurate"] is False
    items = body["detailedFeedbackItems"]
    assert items[0]["errorType"] == "grammar"
    # unknown category is dropped, the item is kept
    assert items[1]["errorType"] is None
    assert items[1]["originalHindiSegment"] is None

    progress = client.get("/progress").json()["translation"]
    assert progress["attempts"] == 1
    assert progress["accurate_total"] == 0
    assert progress["last_feedback"]["feedbackSummary"] == "Good effort! A few areas to work on."


def test_evaluate_accurate_translation_defaults_items(client, llm) -> None:
    llm.queue({"isTranslationAccurate": True, "feedbackSummary": "Excellent translation!"})
    r = client.post(
        "/translation/evaluate",
        json={"originalHindiParagraph": HINDI, "userEnglishTranslation": "The weather is lovely today."},
    )
    assert r.json()["detailedFeedbackItems"] == []
    assert client.get("/progress").json()["translation"]["accurate_total"] == 1


def test_evaluate_fallback_on_model_failure(client, llm) -> None:
    llm.queue(RuntimeError("503"))
    r = client.post(
        "/translation/evaluate",
        json={"originalHindiParagraph": HINDI, "userEnglishTranslation": "The weather is nice."},
    )
    assert r.json() == {
        "isTranslationAccurate": False,
        "feedbackSummary": FALLBACK_SUMMARY,
        "detailedFeedbackItems": [],
    }


def test_snake_case_input_is_accepted(client, llm) -> None:
    llm.queue({"isTranslationAccurate": True, "feedbackSummary": "Great!", "detailedFeedbackItems": []})
    r = client.post(
        "/translation/evaluate",
        json={"original_hindi_paragraph": HINDI, "user_english_translation": "The weather is nice."},
    )
    assert r.status_code == 200
