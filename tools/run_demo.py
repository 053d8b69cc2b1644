# tools/run_demo.py
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from livingdoc_core.domain_models import Article, MediaSource
from livingdoc_core.engine import build_engine, run_import

"""
tools.run_demo
==============

CLI "demo" para correr una importación end-to-end sin base de datos.

1) Lee un artículo desde un JSON:
       {"title": "...", "blocks": ["..."],
        "media": [{"source_url": "...", "caption": "..."}],
        "provider": {"id": "...", "urgency": 3, ...}}
2) Lo transforma con el canal indicado (default: "news").
3) Imprime el árbol resultante y la metadata validada.

El servicio de assets se toma de ASSET_SERVICE_URL.
"""


def main() -> None:
    parser = argparse.ArgumentParser(description="Importa un artículo JSON a un canal")
    parser.add_argument("article", type=Path, help="Ruta al JSON del artículo")
    parser.add_argument("--channel", default="news")
    parser.add_argument("--document-id", default=None)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    data = json.loads(args.article.read_text(encoding="utf-8"))
    article = Article(
        title=data["title"],
        blocks=list(data.get("blocks", [])),
        media=[MediaSource(**m) for m in data.get("media", [])],
        provider=dict(data.get("provider", {})),
    )

    engine = build_engine()
    doc, record = run_import(engine, article, args.channel, document_id=args.document_id)

    print(f"✅ Documento {doc.id} ({doc.design.key}) con {len(doc.tree)} componentes")
    print(json.dumps({"content": doc.tree.to_dict(), "metadata": record}, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
