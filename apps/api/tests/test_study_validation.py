import unittest

from app.domain.study.errors import GenerationError
from app.domain.study.validation import (
    validate_distractors,
    validate_flashcard_set,
    validate_quiz,
    validate_title,
)


def _question(**overrides) -> dict:
    item = {
        "question": "Which organelle produces ATP?",
        "options": ["Nucleus", "Mitochondria", "Ribosome", "Golgi"],
        "correctAnswer": 1,
        "explanation": "Mitochondria run cellular respiration.",
    }
    item.update(overrides)
    return item


class FlashcardValidationTests(unittest.TestCase):
    def test_front_back_is_renamed_to_question_answer(self) -> None:
        cards = validate_flashcard_set(
            {"flashcards": [{"front": " What is ATP? ", "back": "Energy currency of the cell"}]}
        )
        self.assertEqual(len(cards), 1)
        self.assertEqual(cards[0].question, "What is ATP?")
        self.assertEqual(cards[0].answer, "Energy currency of the cell")

    def test_question_answer_shape_is_accepted(self) -> None:
        cards = validate_flashcard_set({"flashcards": [{"question": "Q", "answer": "A"}]})
        self.assertEqual((cards[0].question, cards[0].answer), ("Q", "A"))

    def test_rejects_non_object_and_missing_array(self) -> None:
        for data in (None, [], "flashcards", {"cards": []}, {"flashcards": {}}, {"flashcards": []}):
            with self.assertRaises(GenerationError) as ctx:
                validate_flashcard_set(data)
            self.assertEqual(ctx.exception.code, "schema_mismatch")

    def test_reports_offending_index_and_field(self) -> None:
        data = {
            "flashcards": [
                {"front": "ok", "back": "ok"},
                {"front": "missing back", "back": "   "},
            ]
        }
        with self.assertRaises(GenerationError) as ctx:
            validate_flashcard_set(data)
        self.assertIn("index 1", ctx.exception.message)
        self.assertEqual(ctx.exception.details, {"index": 1, "field": "back"})

    def test_rejects_card_without_known_fields(self) -> None:
        with self.assertRaises(GenerationError) as ctx:
            validate_flashcard_set({"flashcards": [{"term": "x", "definition": "y"}]})
        self.assertIn("missing front/back", ctx.exception.message)

    def test_does_not_mutate_input(self) -> None:
        data = {"flashcards": [{"front": " a ", "back": " b "}]}
        validate_flashcard_set(data)
        self.assertEqual(data, {"flashcards": [{"front": " a ", "back": " b "}]})


class QuizValidationTests(unittest.TestCase):
    def test_valid_quiz(self) -> None:
        questions = validate_quiz({"questions": [_question()]})
        self.assertEqual(questions[0].correct_answer, 1)
        self.assertEqual(questions[0].options[1], "Mitochondria")
        self.assertEqual(questions[0].explanation, "Mitochondria run cellular respiration.")

    def test_explanation_is_optional(self) -> None:
        item = _question()
        del item["explanation"]
        self.assertIsNone(validate_quiz({"questions": [item]})[0].explanation)

    def test_correct_answer_out_of_bounds_is_rejected(self) -> None:
        for correct in (4, 5, -1):
            with self.assertRaises(GenerationError) as ctx:
                validate_quiz({"questions": [_question(correctAnswer=correct)]})
            self.assertEqual(ctx.exception.details["field"], "correctAnswer")

    def test_correct_answer_must_be_integer(self) -> None:
        for correct in ("1", 1.0, True, None):
            with self.assertRaises(GenerationError):
                validate_quiz({"questions": [_question(correctAnswer=correct)]})

    def test_options_rules(self) -> None:
        for options in (["only one"], "A, B", ["A", ""], ["A", 2]):
            with self.assertRaises(GenerationError) as ctx:
                validate_quiz({"questions": [_question(options=options, correctAnswer=0)]})
            self.assertEqual(ctx.exception.details["field"], "options")

    def test_empty_question_text(self) -> None:
        with self.assertRaises(GenerationError) as ctx:
            validate_quiz({"questions": [_question(), _question(question=" ")]})
        self.assertIn("index 1", ctx.exception.message)

    def test_empty_questions_array(self) -> None:
        with self.assertRaises(GenerationError) as ctx:
            validate_quiz({"questions": []})
        self.assertIn("empty questions array", ctx.exception.message)


class DistractorAndTitleValidationTests(unittest.TestCase):
    def test_distractors_from_array_or_object(self) -> None:
        self.assertEqual(validate_distractors(["3", "5", "6"], "4"), ["3", "5", "6"])
        self.assertEqual(validate_distractors({"options": ["3", "5", "6"]}, "4"), ["3", "5", "6"])

    def test_distractors_rejects_wrong_length_duplicates_and_answer(self) -> None:
        for data in (["3", "5"], ["3", "5", "6", "7"], ["3", "3", "5"], ["3", " 4 ", "5"], ["3", "", "5"]):
            with self.assertRaises(GenerationError):
                validate_distractors(data, "4")

    def test_title_is_cleaned(self) -> None:
        self.assertEqual(validate_title('**"Photosynthesis Basics"**\n'), "Photosynthesis Basics")
        self.assertEqual(validate_title("Title: Cell Biology 101"), "Cell Biology 101")

    def test_title_keeps_trailing_symbols(self) -> None:
        self.assertEqual(validate_title("Getting Started with C#"), "Getting Started with C#")
        self.assertEqual(validate_title("## Intro to F#\n"), "Intro to F#")
        self.assertEqual(validate_title("**Python __init__ Basics**"), "Python __init__ Basics")
        self.assertEqual(validate_title("\"Newton's Laws\""), "Newton's Laws")

    def test_blank_title_is_rejected(self) -> None:
        for text in ("", "  ", '""', None):
            with self.assertRaises(GenerationError):
                validate_title(text)


if __name__ == "__main__":
    unittest.main()
