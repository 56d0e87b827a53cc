# utils.py
# -*- coding: utf-8 -*-
import os
import json
import time
import shutil
import logging
import tempfile

from novel_errors import StorageFailure


def read_file(filename: str) -> str:
    """读取文件的全部内容，若文件不存在则返回空字符串；其他读取错误抛出 StorageFailure。"""
    try:
        with open(filename, 'r', encoding='utf-8') as file:
            return file.read()
    except FileNotFoundError:
        return ""
    except OSError as e:
        raise StorageFailure(f"[read_file] 读取文件时发生错误: {filename}: {e}") from e


def save_string_to_txt(content: str, filename: str):
    """将字符串保存为 txt 文件（整体覆盖写，先写临时文件再替换）。"""
    _atomic_write(filename, lambda f: f.write(content))


def load_data_from_json(file_path: str):
    """读取 JSON 文件，不存在时返回 None。"""
    try:
        with open(file_path, 'r', encoding='utf-8') as json_file:
            return json.load(json_file)
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as e:
        raise StorageFailure(f"[load_data_from_json] 读取JSON文件时出错: {file_path}: {e}") from e


def save_data_to_json(data, file_path: str):
    """将数据保存到 JSON 文件（整体覆盖写）。"""
    _atomic_write(file_path, lambda f: json.dump(data, f, ensure_ascii=False, indent=2))


def remove_path(path: str) -> bool:
    """删除文件或目录，不存在时返回 False。"""
    try:
        if os.path.isdir(path):
            shutil.rmtree(path)
        elif os.path.exists(path):
            os.remove(path)
        else:
            return False
        return True
    except OSError as e:
        raise StorageFailure(f"[remove_path] 无法删除 {path}: {e}") from e


def _atomic_write(file_path: str, writer):
    directory = os.path.dirname(os.path.abspath(file_path))
    tmp_path = None
    try:
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp_", suffix=".part")
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            writer(f)
        os.replace(tmp_path, file_path)
    except (OSError, TypeError, ValueError) as e:
        if tmp_path and os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise StorageFailure(f"写入文件失败: {file_path}: {e}") from e


def call_with_retry(func, max_retries=3, sleep_time=1.0, max_sleep=8.0,
                    retry_exceptions=(Exception,), **kwargs):
    """
    通用的重试机制封装（指数退避）。
    :param func: 要执行的函数
    :param max_retries: 最大尝试次数
    :param sleep_time: 第一次重试前的等待秒数，之后每次翻倍
    :param max_sleep: 单次等待的上限
    :param retry_exceptions: 仅对这些异常进行重试，其余异常直接抛出
    :param kwargs: 传给func的命名参数
    :return: func的结果；最后一次仍失败时抛出该异常
    """
    for attempt in range(1, max_retries + 1):
        try:
            return func(**kwargs)
        except retry_exceptions as e:
            if attempt >= max_retries:
                logging.error(f"[call_with_retry] Max retries reached: {e}")
                raise
            wait = min(max_sleep, sleep_time * (2 ** (attempt - 1)))
            logging.warning(f"[call_with_retry] Attempt {attempt} failed with error: {e}; retrying in {wait}s")
            time.sleep(wait)
