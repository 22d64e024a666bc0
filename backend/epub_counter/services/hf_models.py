"""Curated list of Hugging Face models known to ship a usable tokenizer.

Any Hub model with a ``tokenizer.json`` works through ``hf:<model>``; this
list only feeds ``list-models`` and the dashboard's model picker.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

BROWSE_MODELS_URL = "https://huggingface.co/models?library=transformers.js"


@dataclass(frozen=True)
class HFModelInfo:
    name: str
    description: str
    architecture: str
    tag: Optional[str] = None

    @property
    def tokenizer_id(self) -> str:
        return f"hf:{self.name}"

    def to_dict(self) -> dict:
        return asdict(self)


HF_MODELS: List[HFModelInfo] = [
    # BERT family
    HFModelInfo("bert-base-uncased", "BERT base model (uncased)", "BERT"),
    HFModelInfo("Xenova/bert-base-uncased", "BERT base (ONNX, faster loading)", "BERT", tag="ONNX"),
    HFModelInfo("bert-large-uncased", "BERT large model (uncased)", "BERT"),
    HFModelInfo("distilbert-base-uncased", "DistilBERT base (faster, lighter BERT)", "DistilBERT"),
    HFModelInfo("roberta-base", "RoBERTa base model", "RoBERTa"),
    # GPT family
    HFModelInfo("gpt2", "GPT-2 small (117M params)", "GPT-2"),
    HFModelInfo("Xenova/gpt2", "GPT-2 small (ONNX)", "GPT-2", tag="ONNX"),
    HFModelInfo("gpt2-medium", "GPT-2 medium (345M params)", "GPT-2"),
    # Llama family (gated: needs HF_TOKEN)
    HFModelInfo("meta-llama/Llama-2-7b", "Llama 2 7B", "Llama"),
    HFModelInfo("meta-llama/Llama-2-13b", "Llama 2 13B", "Llama"),
    HFModelInfo("meta-llama/Meta-Llama-3-8B", "Llama 3 8B", "Llama"),
    HFModelInfo("mistralai/Mistral-7B-v0.1", "Mistral 7B", "Mistral"),
    HFModelInfo("microsoft/phi-3-mini-4k-instruct", "Phi-3 mini (4K context)", "Phi"),
    HFModelInfo("Qwen/Qwen2-7B", "Qwen2 7B (multilingual)", "Qwen"),
    HFModelInfo("t5-base", "T5 base (text-to-text)", "T5"),
    HFModelInfo("facebook/bart-base", "BART base (seq2seq)", "BART"),
]

PRESET_TOKENIZER_INFO: List[dict] = [
    {"id": "gpt4", "name": "GPT-4", "description": "OpenAI GPT-4 tokenizer (cl100k_base)", "async": False},
    {"id": "claude", "name": "Claude", "description": "Anthropic Claude tokenizer", "async": False},
]


def get_model_list() -> List[HFModelInfo]:
    return list(HF_MODELS)


def get_models_by_architecture() -> Dict[str, List[HFModelInfo]]:
    """Group models by architecture, preserving registry order."""
    grouped: Dict[str, List[HFModelInfo]] = {}
    for model in HF_MODELS:
        grouped.setdefault(model.architecture, []).append(model)
    return grouped


def search_models(query: str) -> List[HFModelInfo]:
    """Case-insensitive substring match on name, description and architecture."""
    q = query.lower()
    return [
        m
        for m in HF_MODELS
        if q in m.name.lower() or q in m.description.lower() or q in m.architecture.lower()
    ]


def list_available_tokenizers() -> List[dict]:
    """Every selectable tokenizer: the presets followed by the ``hf:`` registry."""
    hf_entries = [
        {"id": m.tokenizer_id, "name": m.name, "description": m.description, "async": True}
        for m in HF_MODELS
    ]
    return [dict(entry) for entry in PRESET_TOKENIZER_INFO] + hf_entries
