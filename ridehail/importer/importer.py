# ridehail/importer/importer.py
"""
Импорт водителей из CSV в Driver Location Service.

Формат CSV: заголовок, затем строки latitude,longitude.
Один поток читает файл и складывает пачки в очередь, несколько воркеров
отправляют их в POST /api/v1/drivers/batch.
"""

from __future__ import annotations

import argparse
import csv
import queue
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Sequence

import httpx

from ridehail.common.constants import API_KEY_HEADER, GEO_POINT_TYPE
from ridehail.common.logger import get_logger, setup_logging
from ridehail.shared.models import BatchCreateRequest, CreateDriverRequest, GeoPoint

logger = get_logger("importer")


@dataclass
class BatchResult:
    """Итог одной пачки."""

    requested: int
    created: int = 0
    errors: int = 0


@dataclass
class ImportStats:
    """Общие счётчики импорта. Обновляются из нескольких потоков."""

    records: int = 0
    requested: int = 0
    created: int = 0
    errors: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def add(self, result: BatchResult) -> None:
        with self._lock:
            self.requested += result.requested
            self.created += result.created
            self.errors += result.errors

    def add_errors(self, count: int = 1) -> None:
        with self._lock:
            self.errors += count


# =============================================================================
# ЧТЕНИЕ CSV
# =============================================================================

def parse_row(record: Sequence[str]) -> CreateDriverRequest:
    """
    Строка CSV (latitude, longitude) -> запрос на создание водителя.
    В GeoJSON порядок обратный: [longitude, latitude].

    Raises:
        ValueError: неверный формат или координаты вне диапазона
    """
    if len(record) < 2:
        raise ValueError(
            f"invalid record format: expected at least 2 fields (latitude,longitude), got {len(record)}"
        )

    latitude_str, longitude_str = record[0].strip(), record[1].strip()
    try:
        latitude = float(latitude_str)
    except ValueError:
        raise ValueError(f"invalid latitude '{latitude_str}'") from None
    try:
        longitude = float(longitude_str)
    except ValueError:
        raise ValueError(f"invalid longitude '{longitude_str}'") from None

    # pydantic.ValidationError наследует ValueError
    return CreateDriverRequest(
        location=GeoPoint(type=GEO_POINT_TYPE, coordinates=[longitude, latitude]),
    )


def read_batches(
    path: str | Path,
    batch_size: int,
    stats: ImportStats,
) -> Iterator[list[CreateDriverRequest]]:
    """
    Читает CSV и отдаёт пачки по batch_size.
    Ошибочные строки считаются в stats.errors и пропускаются.
    """
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.reader(f)
        next(reader, None)  # заголовок

        batch: list[CreateDriverRequest] = []
        for line_no, record in enumerate(reader, start=2):
            if not record:
                continue
            stats.records += 1
            try:
                batch.append(parse_row(record))
            except ValueError as e:
                stats.add_errors(1)
                logger.warning(f"Строка {line_no} {record}: {e}")
                continue

            if len(batch) >= batch_size:
                yield batch
                batch = []

        if batch:
            yield batch


# =============================================================================
# ОТПРАВКА
# =============================================================================

def post_batch(
    client: httpx.Client,
    api_url: str,
    api_key: str,
    batch: list[CreateDriverRequest],
    worker_id: int = 0,
) -> BatchResult:
    """Отправляет пачку и сверяет число созданных водителей (data.count) с отправленным."""
    result = BatchResult(requested=len(batch))

    headers = {"Content-Type": "application/json"}
    if api_key:
        headers[API_KEY_HEADER] = api_key

    body = BatchCreateRequest(drivers=batch).model_dump(mode="json", exclude_none=True)
    try:
        response = client.post(api_url, json=body, headers=headers)
    except httpx.HTTPError as e:
        logger.error(f"Worker {worker_id}: ошибка HTTP запроса: {e}")
        result.errors = len(batch)
        return result

    try:
        payload = response.json()
    except ValueError:
        payload = None

    if response.status_code != httpx.codes.CREATED:
        if isinstance(payload, dict):
            logger.error(
                f"Worker {worker_id}: ошибка API (status {response.status_code}): "
                f"{payload.get('error')} - {payload.get('message')}"
            )
        else:
            logger.error(f"Worker {worker_id}: ошибка API (status {response.status_code}): {response.text}")
        result.errors = len(batch)
        return result

    if not isinstance(payload, dict) or not payload.get("success"):
        logger.error(f"Worker {worker_id}: операция API не выполнена: {payload}")
        result.errors = len(batch)
        return result

    data = payload.get("data")
    count = data.get("count") if isinstance(data, dict) else None
    result.created = int(count) if isinstance(count, (int, float)) else 0

    if result.created != len(batch):
        logger.warning(
            f"Worker {worker_id}: расхождение в пачке - отправлено: {len(batch)}, создано: {result.created}"
        )
        result.errors = len(batch) - result.created

    logger.info(f"Worker {worker_id}: пачка обработана - отправлено: {len(batch)}, создано: {result.created}")
    return result


def run_import(
    csv_path: str | Path,
    api_url: str,
    api_key: str,
    batch_size: int = 100,
    num_workers: int = 4,
    timeout: float = 30.0,
    client: httpx.Client | None = None,
) -> ImportStats:
    """
    Импортирует CSV: один читатель, num_workers отправителей.

    Raises:
        OSError: файл не открывается
    """
    stats = ImportStats()
    batches: queue.Queue[list[CreateDriverRequest] | None] = queue.Queue()
    own_client = client is None
    http = client or httpx.Client(timeout=timeout)

    def worker(worker_id: int) -> None:
        while True:
            batch = batches.get()
            if batch is None:
                return
            stats.add(post_batch(http, api_url, api_key, batch, worker_id))

    threads = [
        threading.Thread(target=worker, args=(i,), name=f"importer-{i}", daemon=True)
        for i in range(max(1, num_workers))
    ]
    for t in threads:
        t.start()

    try:
        for batch in read_batches(csv_path, batch_size, stats):
            batches.put(batch)
    finally:
        # Воркеры дочитывают очередь и выходят по стоп-маркеру
        for _ in threads:
            batches.put(None)
        for t in threads:
            t.join()
        if own_client:
            http.close()

    logger.info(f"Обработка CSV завершена. Прочитано строк: {stats.records}")
    return stats


def main(argv: Sequence[str] | None = None) -> int:
    from ridehail.config import settings

    parser = argparse.ArgumentParser(description="Импорт водителей из CSV в Driver Location Service")
    parser.add_argument("--csv", default=settings.importer.CSV_PATH, help="Путь к CSV (latitude,longitude)")
    parser.add_argument("--url", default=settings.importer.API_URL, help="URL batch endpoint")
    parser.add_argument("--batch-size", type=int, default=settings.importer.BATCH_SIZE)
    parser.add_argument("--workers", type=int, default=settings.importer.NUM_WORKERS)
    args = parser.parse_args(argv)

    setup_logging()
    logger.info("Импорт водителей запущен...")

    try:
        stats = run_import(
            args.csv,
            args.url,
            settings.importer.API_KEY,
            batch_size=args.batch_size,
            num_workers=args.workers,
            timeout=settings.importer.REQUEST_TIMEOUT,
        )
    except OSError as e:
        logger.error(f"Импорт не удался: {e}")
        return 1

    logger.info(
        f"Импорт завершён. Отправлено: {stats.requested}, success={stats.created}, error={stats.errors}"
    )
    return 0
